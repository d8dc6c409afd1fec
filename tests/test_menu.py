import pytest

from controlkit.errors import HalError
from controlkit.menu import MenuFullError, MenuItem, MenuManager


def make_menu(count, **kwargs):
    menu = MenuManager("Main")
    for number in range(count):
        menu.add_item(f"Item {number}", number, **kwargs)
    return menu


def test_defaults():
    menu = MenuManager()
    assert menu.title == "Menu"
    assert len(menu) == 0
    assert menu.current_label == ""
    assert menu.visible_items() == []


def test_add_item_and_lookup():
    menu = make_menu(3)
    assert len(menu) == 3
    assert menu.item(1).label == "Item 1"
    assert menu.item(1).item_id == 1
    assert menu.item(1).enabled is True
    assert menu.current_label == "Item 0"


def test_item_out_of_range():
    menu = make_menu(2)
    with pytest.raises(IndexError):
        menu.item(2)
    with pytest.raises(IndexError):
        menu.item(-1)


def test_menu_full():
    menu = make_menu(MenuManager.MAX_MENU_ITEMS)
    with pytest.raises(MenuFullError):
        menu.add_item("extra", 99)
    with pytest.raises(HalError):
        menu.append(MenuItem("extra", 99))
    assert len(menu) == MenuManager.MAX_MENU_ITEMS


def test_labels_and_title_are_clipped():
    long_text = "x" * 50
    menu = MenuManager(long_text)
    item = menu.add_item(long_text, 1)
    assert len(item.label) == MenuManager.MAX_LABEL_LENGTH - 1
    assert len(menu.title) == MenuManager.MAX_LABEL_LENGTH - 1
    assert long_text.startswith(item.label)


def test_navigation_wraps():
    menu = make_menu(3)
    menu.navigate_up()
    assert menu.current_index == 2
    menu.navigate_down()
    assert menu.current_index == 0
    menu.navigate_down()
    assert menu.current_label == "Item 1"


def test_navigation_without_wrap_stops_at_ends():
    menu = make_menu(3)
    menu.wrap_around = False
    menu.navigate_up()
    assert menu.current_index == 0
    for _ in range(5):
        menu.navigate_down()
    assert menu.current_index == 2


def test_navigation_on_empty_menu():
    menu = MenuManager()
    menu.navigate_down()
    menu.navigate_up()
    assert menu.current_index == 0


def test_scroll_window_follows_selection():
    menu = make_menu(6)
    for _ in range(4):
        menu.navigate_down()
    assert menu.current_index == 4
    visible = menu.visible_items()
    assert len(visible) == menu.visible_count
    assert visible[-1] is menu.item(4)
    assert menu.has_more_above is True
    assert menu.has_more_below is True

    menu.navigate_down()
    menu.navigate_down()
    assert menu.current_index == 0
    assert menu.scroll_offset == 0
    assert menu.visible_items()[0] is menu.item(0)
    assert menu.has_more_above is False


def test_visible_count_setting():
    menu = make_menu(5)
    menu.visible_count = 2
    menu.navigate_down()
    menu.navigate_down()
    assert [item.item_id for item in menu.visible_items()] == [1, 2]


def test_remove_item_adjusts_selection():
    menu = make_menu(3)
    menu.navigate_up()
    removed = menu.remove_item(2)
    assert removed.item_id == 2
    assert len(menu) == 2
    assert menu.current_index == 1
    assert menu.current_label == "Item 1"


def test_remove_unknown_item():
    menu = make_menu(2)
    with pytest.raises(KeyError):
        menu.remove_item(42)
    assert len(menu) == 2


def test_select_runs_callback():
    calls = []
    menu = MenuManager()
    menu.add_item("Go", 1, lambda: calls.append("go"))
    menu.add_item("Stop", 2, lambda: calls.append("stop"))
    menu.select()
    menu.navigate_down()
    menu.select()
    assert calls == ["go", "stop"]


def test_select_skips_disabled_and_missing_callback():
    calls = []
    menu = MenuManager()
    menu.append(MenuItem("Off", 1, lambda: calls.append("off"), enabled=False))
    menu.add_item("Plain", 2)
    menu.select()
    menu.navigate_down()
    menu.select()
    assert calls == []


def test_back_runs_handler():
    calls = []
    menu = MenuManager()
    menu.on_back = lambda: calls.append("back")
    menu.back()
    assert calls == ["back"]


def test_reset_returns_to_top():
    menu = make_menu(6)
    for _ in range(5):
        menu.navigate_down()
    menu.reset()
    assert menu.current_index == 0
    assert menu.scroll_offset == 0
    assert menu.needs_redraw is True
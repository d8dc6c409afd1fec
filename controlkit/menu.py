"""Scrollable list menu with selection, wrap-around and item callbacks."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from controlkit.errors import HalError

_log = logging.getLogger(__name__)

MAX_MENU_ITEMS = 10
MAX_LABEL_LENGTH = 32


def _clip_label(text: str) -> str:
    return text[: MAX_LABEL_LENGTH - 1]


@dataclass
class MenuItem:
    """One menu entry; labels longer than 31 characters are cut short."""

    label: str
    item_id: int
    callback: Optional[Callable[[], None]] = None
    enabled: bool = True
    submenu: Optional["MenuItem"] = None

    def __post_init__(self) -> None:
        self.label = _clip_label(self.label)


class MenuFullError(HalError):
    """The menu already holds the maximum number of items."""


class MenuManager:
    """Holds up to ten items and tracks the selection and the visible window."""

    MAX_MENU_ITEMS = MAX_MENU_ITEMS
    MAX_LABEL_LENGTH = MAX_LABEL_LENGTH

    def __init__(self, title: str = "Menu") -> None:
        self._items: list[MenuItem] = []
        self._current_index = 0
        self._scroll_offset = 0
        self.visible_count = 4
        self.wrap_around = True
        self.needs_redraw = True
        self.on_back: Optional[Callable[[], None]] = None
        self._title = ""
        self.title = title

    @property
    def title(self) -> str:
        return self._title

    @title.setter
    def title(self, title: str) -> None:
        self._title = _clip_label(title)
        self.needs_redraw = True

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def scroll_offset(self) -> int:
        return self._scroll_offset

    @property
    def current_label(self) -> str:
        """Label of the selected item, or an empty string when there is none."""
        if self._current_index >= len(self._items):
            return ""
        return self._items[self._current_index].label

    @property
    def items(self) -> tuple[MenuItem, ...]:
        return tuple(self._items)

    @property
    def has_more_above(self) -> bool:
        return self._scroll_offset > 0

    @property
    def has_more_below(self) -> bool:
        return self._scroll_offset + self.visible_count < len(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def reset(self) -> None:
        """Select the first item and scroll back to the top."""
        self._current_index = 0
        self._scroll_offset = 0
        self.needs_redraw = True

    def add_item(self, label: str, item_id: int, callback: Optional[Callable[[], None]] = None) -> MenuItem:
        """Create an enabled item and append it; raises :class:`MenuFullError` when full."""
        if len(self._items) >= MAX_MENU_ITEMS:
            _log.error("menu full, cannot add item %r", label)
            raise MenuFullError("menu is full")
        item = MenuItem(label, item_id, callback)
        self._items.append(item)
        self.needs_redraw = True
        _log.debug("added item: %s (id=%d)", item.label, item_id)
        return item

    def append(self, item: MenuItem) -> None:
        """Append a prepared item; raises :class:`MenuFullError` when full."""
        if len(self._items) >= MAX_MENU_ITEMS:
            raise MenuFullError("menu is full")
        self._items.append(item)
        self.needs_redraw = True

    def remove_item(self, item_id: int) -> MenuItem:
        """Remove the first item with ``item_id``; raises :class:`KeyError` if none."""
        for position, item in enumerate(self._items):
            if item.item_id == item_id:
                del self._items[position]
                count = len(self._items)
                if count > 0 and self._current_index >= count:
                    self._current_index = count - 1
                self._update_scroll_offset()
                self.needs_redraw = True
                return item
        raise KeyError(item_id)

    def navigate_up(self) -> None:
        if not self._items:
            return
        if self._current_index > 0:
            self._current_index -= 1
        elif self.wrap_around:
            self._current_index = len(self._items) - 1
        self._update_scroll_offset()
        self.needs_redraw = True

    def navigate_down(self) -> None:
        if not self._items:
            return
        if self._current_index < len(self._items) - 1:
            self._current_index += 1
        elif self.wrap_around:
            self._current_index = 0
        self._update_scroll_offset()
        self.needs_redraw = True

    def select(self) -> None:
        """Run the selected item's callback if it is enabled."""
        if self._current_index >= len(self._items):
            return
        item = self._items[self._current_index]
        if item.enabled and item.callback is not None:
            _log.info("selected: %s", item.label)
            item.callback()

    def back(self) -> None:
        """Run the ``on_back`` handler, if one is set."""
        _log.info("back pressed")
        if self.on_back is not None:
            self.on_back()

    def item(self, index: int) -> MenuItem:
        """Return the item at ``index``; raises :class:`IndexError` when out of range."""
        if not 0 <= index < len(self._items):
            raise IndexError(f"menu index {index} out of range")
        return self._items[index]

    def visible_items(self) -> list[MenuItem]:
        """Items inside the current scroll window, top first."""
        return self._items[self._scroll_offset : self._scroll_offset + self.visible_count]

    def _update_scroll_offset(self) -> None:
        if self._current_index < self._scroll_offset:
            self._scroll_offset = self._current_index
        elif self._current_index >= self._scroll_offset + self.visible_count:
            self._scroll_offset = self._current_index - self.visible_count + 1
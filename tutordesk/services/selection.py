"""Cross-page selection of directory accounts.

SelectionState is owned by the caller and handed to bulk operations. Paging,
sorting and filtering never touch it; only explicit calls change it.
"""

from typing import Iterable


class SelectionState:
    """Ordered set of selected account ids."""

    def __init__(self, disabled_ids: Iterable[int] = ()):
        # dict keeps selection order for exports
        self._selected: dict[int, None] = {}
        self.disabled_ids = frozenset(disabled_ids)

    def __contains__(self, account_id: int) -> bool:
        return account_id in self._selected

    def __len__(self) -> int:
        return len(self._selected)

    @property
    def ids(self) -> list[int]:
        """Selected ids in the order they were selected."""
        return list(self._selected)

    @property
    def count(self) -> int:
        return len(self._selected)

    def is_selected(self, account_id: int) -> bool:
        return account_id in self._selected

    def select(self, account_id: int) -> None:
        if account_id not in self.disabled_ids:
            self._selected.setdefault(account_id, None)

    def deselect(self, account_id: int) -> None:
        self._selected.pop(account_id, None)

    def toggle(self, account_id: int) -> None:
        if account_id in self._selected:
            self.deselect(account_id)
        else:
            self.select(account_id)

    def _eligible(self, account_ids: Iterable[int]) -> list[int]:
        return [aid for aid in account_ids if aid not in self.disabled_ids]

    def toggle_page(self, account_ids: Iterable[int], enabled: bool | None = None) -> None:
        """Select or deselect every id on a page.

        With enabled=None the page is selected unless all of it already is,
        in which case it is deselected. Selections from other pages stay.
        """
        eligible = self._eligible(account_ids)
        if enabled is None:
            enabled = not all(aid in self._selected for aid in eligible)
        for account_id in eligible:
            if enabled:
                self.select(account_id)
            else:
                self.deselect(account_id)

    def select_only(self, account_ids: Iterable[int]) -> None:
        """Replace the selection with the given ids."""
        self._selected = dict.fromkeys(self._eligible(account_ids))

    def is_all_selected(self, account_ids: Iterable[int]) -> bool:
        eligible = self._eligible(account_ids)
        return bool(eligible) and all(aid in self._selected for aid in eligible)

    def clear(self) -> None:
        self._selected = {}

    def __repr__(self) -> str:
        return f"<SelectionState(count={self.count})>"


__all__ = ["SelectionState"]

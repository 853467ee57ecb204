"""Display-only grouping of workflow names into named folders.

The layout is a mapping of folder name to an ordered list of workflow names.
Every known workflow name lives in exactly one folder; names that are not
explicitly filed live in the default folder ``"/"``.
"""

from __future__ import annotations

from collections.abc import Iterable

DEFAULT_FOLDER = "/"


class FolderLayout:
    """Mutating view over a persisted ``folders`` mapping.

    The mapping is edited in place so the owning config always reflects the
    current layout.
    """

    def __init__(self, folders: dict[str, list[str]]) -> None:
        self._folders = folders
        self._folders.setdefault(DEFAULT_FOLDER, [])
        self._dedupe()

    @property
    def folders(self) -> dict[str, list[str]]:
        return self._folders

    def names(self) -> list[str]:
        """Folder names, default folder first, the rest in insertion order."""

        return [DEFAULT_FOLDER] + [f for f in self._folders if f != DEFAULT_FOLDER]

    def items_in(self, folder: str) -> list[str]:
        return list(self._folders.get(folder, []))

    def folder_of(self, name: str) -> str | None:
        for folder, items in self._folders.items():
            if name in items:
                return folder
        return None

    def sync(self, known_names: Iterable[str]) -> None:
        """Reconcile the layout with the workflows that currently exist.

        New names are appended to the default folder; names that no longer
        exist are dropped. Existing placement and order are preserved.
        """

        known = list(dict.fromkeys(known_names))
        known_set = set(known)

        for folder, items in self._folders.items():
            self._folders[folder] = [n for n in items if n in known_set]

        for name in known:
            if self.folder_of(name) is None:
                self._folders[DEFAULT_FOLDER].append(name)

    def create_folder(self, folder: str) -> None:
        folder = folder.strip()
        if not folder:
            raise ValueError("Folder name must not be empty")
        if folder in self._folders:
            raise ValueError(f"Folder already exists: {folder}")
        self._folders[folder] = []

    def rename_folder(self, old: str, new: str) -> None:
        new = new.strip()
        if old == DEFAULT_FOLDER:
            raise ValueError("The default folder cannot be renamed")
        if old not in self._folders:
            raise KeyError(old)
        if not new or new in self._folders:
            raise ValueError(f"Invalid or duplicate folder name: {new!r}")

        # Rebuild to keep the folder's position in the ordering.
        self._replace({(new if k == old else k): v for k, v in self._folders.items()})

    def remove_folder(self, folder: str) -> None:
        """Delete ``folder``; its workflows return to the default folder."""

        if folder == DEFAULT_FOLDER:
            raise ValueError("The default folder cannot be removed")
        items = self._folders.pop(folder)
        self._folders[DEFAULT_FOLDER].extend(items)

    def move(self, name: str, folder: str, index: int | None = None) -> None:
        """File ``name`` under ``folder`` at ``index`` (append when ``None``)."""

        if folder not in self._folders:
            raise KeyError(folder)

        current = self.folder_of(name)
        if current is not None:
            self._folders[current].remove(name)

        target = self._folders[folder]
        if index is None or index >= len(target):
            target.append(name)
        else:
            target.insert(max(index, 0), name)

    def _dedupe(self) -> None:
        seen: set[str] = set()
        for folder in self.names():
            unique: list[str] = []
            for name in self._folders[folder]:
                if name not in seen:
                    seen.add(name)
                    unique.append(name)
            self._folders[folder] = unique

    def _replace(self, new: dict[str, list[str]]) -> None:
        self._folders.clear()
        self._folders.update(new)

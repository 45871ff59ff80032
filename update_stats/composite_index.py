"""Fixed-depth nested mapping used to regroup flat query rows."""

from typing import Any, Iterator


class _Branch(dict):
    """Interior node. Anything stored in a branch that isn't a _Branch is a leaf."""


class CompositeIndex:
    """An ordered multi-level index over ``column_count`` columns.

    ``add(k1, ..., kN-1, value)`` stores *value* under the key path
    ``k1 > ... > kN-1``, overwriting any previous leaf. ``rows(depth)``
    walks the tree in insertion order and yields tuples of *depth* keys
    followed by what hangs below them: the leaf value at full depth, a
    plain dict of the remaining levels otherwise.
    """

    def __init__(self, column_count: int):
        if column_count < 2:
            raise ValueError("The index must have at least 2 columns.")
        self._column_count = column_count
        self._root = _Branch()

    @property
    def column_count(self) -> int:
        return self._column_count

    def __len__(self) -> int:
        return sum(1 for _ in self.rows())

    def add(self, *values: Any) -> None:
        if len(values) < self._column_count:
            raise ValueError(
                f"Too few arguments. Received: {len(values)}, "
                f"expected: {self._column_count}."
            )
        node = self._root
        for key in values[:self._column_count - 2]:
            node = node.setdefault(key, _Branch())
        node[values[self._column_count - 2]] = values[self._column_count - 1]

    def rows(self, depth: int | None = None) -> Iterator[tuple]:
        """Yield the index contents grouped at *depth* keys.

        Each call returns a fresh iterator, so the index can be walked
        any number of times.
        """
        if depth is None:
            depth = self._column_count
        if depth > self._column_count or depth < 0:
            raise IndexError(f"depth {depth} is out of range 0..{self._column_count}")
        if depth == 0:
            return iter([(_plain(self._root),)])
        return self._walk(self._root, (), depth)

    def _walk(self, node: _Branch, prefix: tuple, depth: int) -> Iterator[tuple]:
        for key, value in node.items():
            row = prefix + (key,)
            if isinstance(value, _Branch) and len(row) < depth:
                yield from self._walk(value, row, depth)
            elif isinstance(value, _Branch):
                yield row + (_plain(value),)
            else:
                yield row + (value,)


def _plain(node: _Branch) -> dict:
    return {
        key: _plain(value) if isinstance(value, _Branch) else value
        for key, value in node.items()
    }

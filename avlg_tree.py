import logging
import numbers
import random
import time
from abc import abstractmethod
from collections.abc import Container, Iterable, Sized
from typing import Any, cast, Generic, Optional, Protocol, TypeVar


logger = logging.getLogger(__name__)

# classic avl tree
DEFAULT_MAX_IMBALANCE = 1


class ComparableTreeDataType(Protocol):
    @abstractmethod
    def __lt__(self, other: Any, /) -> bool: ...


T = TypeVar('T', bound=ComparableTreeDataType)


class AvlgTreeError(Exception):
    """Base class for errors raised by an AVL-G tree."""


class InvalidBalanceError(AvlgTreeError, ValueError):
    """The requested maximum imbalance is not an integer of at least 1."""


class EmptyTreeError(AvlgTreeError, LookupError):
    """A query that needs at least one key was made on an empty tree."""


class AvlgTreeNode(Generic[T]):
    __slots__ = 'val', 'left', 'right', 'height'

    def __init__(self, val: T):
        self.val: T = val
        self.left: 'None | AvlgTreeNode[T]' = None
        self.right: 'None | AvlgTreeNode[T]' = None
        # number of edges on the longest path down to a leaf; 0 for a leaf, an absent subtree counts as -1
        self.height: int = 0

    def __str__(self):
        return f'{self.__class__.__name__}({self.val})'

    def __repr__(self):
        return str(self)

    def get_children(self) -> tuple['AvlgTreeNode[T]', ...]:
        """Get a tuple of this node's children. May have 0, 1, or 2 elements. If it has 2 children, the returned order
        will always be (left, right).
        """
        return tuple(i for i in [self.left, self.right] if i is not None)

    def _update_node_height(self):
        """Quickly update this node's height by looking at the heights of its children. Assumes child heights are valid.
        """
        self.height = max(height_of(self.left), height_of(self.right)) + 1

    def _calculate_height(self) -> int:
        """Returns max depth of descendents of this node as the number of child edges, walking the tree instead of
        reading the height field. This should only be used for testing.
        """
        depth = 0
        next_level = list(self.get_children())
        while next_level:
            depth += 1
            next_level = [n for node in next_level for n in node.get_children()]
        return depth

    def _calculate_balance(self) -> int:
        """Calculate the balance of this node without trusting any height field. Testing only."""
        return ((self.left._calculate_height() if self.left is not None else -1)
                - (self.right._calculate_height() if self.right is not None else -1))


def height_of(node: 'None | AvlgTreeNode[Any]') -> int:
    """Cached height of a subtree, -1 if it is absent."""
    return -1 if node is None else node.height


def balance_of(node: 'AvlgTreeNode[Any]') -> int:
    """Left height - right height. Positive is left heavy, negative is right heavy."""
    return height_of(node.left) - height_of(node.right)


def rotate_left(node: 'AvlgTreeNode[T]') -> 'AvlgTreeNode[T]':
    """Perform a left rotation rooted at node. node must have a right child.

    Returns the new root of this subtree (the former right child); the caller puts it where node used to be.
    """
    #    *A                  C
    #   B   C      =>     *A   G
    #  D E F G            B F H I
    #       H I          D E
    assert node.right is not None
    r = cast(AvlgTreeNode[T], node.right)
    node.right = r.left
    r.left = node
    # node is now below r, so it goes first
    node._update_node_height()
    r._update_node_height()
    logger.debug('rotated left at %s, new subtree root %s', node.val, r.val)
    return r


def rotate_right(node: 'AvlgTreeNode[T]') -> 'AvlgTreeNode[T]':
    """Perform a right rotation rooted at node. node must have a left child.

    Returns the new root of this subtree (the former left child); the caller puts it where node used to be.
    """
    #    *A                  B
    #   B   C      =>      D  *A
    #  D E F G            H I E C
    # H I                      F G
    assert node.left is not None
    l = cast(AvlgTreeNode[T], node.left)
    node.left = l.right
    l.right = node
    node._update_node_height()
    l._update_node_height()
    logger.debug('rotated right at %s, new subtree root %s', node.val, l.val)
    return l


class AvlgTree(Sized, Container, Generic[T]):
    """AVL tree with a relaxed balance condition. Every node may have subtrees whose heights differ by up to
    max_imbalance (G). G = 1 is a classic AVL tree; a larger G allows a taller tree in exchange for fewer rotations
    on insertion and deletion.

    Keys must be distinct and totally ordered. Inserting a key that is already present is not supported.
    """
    __slots__ = ('_root', '_count', '_max_imbalance')

    def __init__(self, max_imbalance: int = DEFAULT_MAX_IMBALANCE, init: Optional[Iterable[T]] = None):
        """Initialize the tree with its maximum imbalance, optionally with an iterable of keys to initially insert."""
        # bool is an int, but True is not a meaningful imbalance
        if not isinstance(max_imbalance, numbers.Integral) or isinstance(max_imbalance, bool) or max_imbalance < 1:
            raise InvalidBalanceError(f'max imbalance must be an integer of at least 1, got {max_imbalance!r}')
        # integer types such as numpy's are stored as a plain int
        self._max_imbalance: int = int(max_imbalance)
        self._root: 'None | AvlgTreeNode[T]' = None
        self._count: int = 0
        logger.debug('created tree with max imbalance %d', self._max_imbalance)
        if init:
            self.extend(init)

    def __len__(self):
        return self._count

    def __contains__(self, key: Any):
        # unlike search, membership on an empty tree is just False
        return self._find(key) is not None

    def __str__(self):
        return f'{self.__class__.__name__}(max_imbalance={self._max_imbalance}, size={self._count})'

    def __repr__(self):
        return str(self)

    def max_imbalance(self) -> int:
        return self._max_imbalance

    def height(self) -> int:
        """Height of the whole tree; a single node has height 0 and an empty tree -1."""
        return height_of(self._root)

    def is_empty(self) -> bool:
        return self._root is None

    def size(self) -> int:
        return self._count

    def root_key(self) -> T:
        if self._root is None:
            raise EmptyTreeError('root_key on an empty tree')
        return self._root.val

    def clear(self):
        """Removes all keys from the tree."""
        self._root = None
        self._count = 0
        logger.debug('cleared tree')

    def _find(self, key: Any) -> 'None | AvlgTreeNode[T]':
        node = self._root
        while node is not None:
            # lesser values are always in the left subtree, greater values in the right subtree
            if key < node.val:
                node = node.left
            elif node.val < key:
                node = node.right
            else:
                return node
        return None

    def search(self, key: T) -> Optional[T]:
        """Return the stored key equal to key, or None if it is not in the tree. Raises EmptyTreeError if the tree is
        empty.
        """
        if self._root is None:
            raise EmptyTreeError('search on an empty tree')
        node = self._find(key)
        return node.val if node is not None else None

    def _rebalance_inserted(self, node: 'AvlgTreeNode[T]', key: T) -> 'AvlgTreeNode[T]':
        """Restore the balance bound at node after key was inserted below it. Heights of node and its children must
        already be up to date. Returns the root of the subtree that replaces node.
        """
        balance = balance_of(node)
        if balance > self._max_imbalance:
            left = cast(AvlgTreeNode[T], node.left)
            if key < left.val:
                # left left heavy
                return rotate_right(node)
            # left right heavy
            node.left = rotate_left(left)
            return rotate_right(node)
        elif balance < -self._max_imbalance:
            right = cast(AvlgTreeNode[T], node.right)
            if right.val < key:
                # right right heavy
                return rotate_left(node)
            # right left heavy
            node.right = rotate_right(right)
            return rotate_left(node)
        return node

    def _insert(self, node: 'None | AvlgTreeNode[T]', key: T) -> 'AvlgTreeNode[T]':
        if node is None:
            return AvlgTreeNode(key)
        if key < node.val:
            node.left = self._insert(node.left, key)
        else:
            node.right = self._insert(node.right, key)
        node._update_node_height()
        return self._rebalance_inserted(node, key)

    def insert(self, key: T):
        """Insert a key into the tree. The key must not already be present."""
        assert key is not None
        self._root = self._insert(self._root, key)
        # a key whose comparison raises never reaches the tree, so it is not counted
        self._count += 1

    def extend(self, keys: Iterable[T]) -> int:
        """Insert every key of an iterable into the tree. Returns the number of keys inserted."""
        inserted = 0
        for key in keys:
            self.insert(key)
            inserted += 1
        return inserted

    def _rebalance_deleted(self, node: 'AvlgTreeNode[T]') -> 'AvlgTreeNode[T]':
        """Restore the balance bound at node after a deletion below it. There is no inserted key to follow, so the
        heavy child's own balance picks between a single and a double rotation.
        """
        balance = balance_of(node)
        if balance > self._max_imbalance:
            left = cast(AvlgTreeNode[T], node.left)
            if balance_of(left) >= 0:
                return rotate_right(node)
            node.left = rotate_left(left)
            return rotate_right(node)
        elif balance < -self._max_imbalance:
            right = cast(AvlgTreeNode[T], node.right)
            if balance_of(right) <= 0:
                return rotate_left(node)
            node.right = rotate_right(right)
            return rotate_left(node)
        return node

    def _delete(self, node: 'None | AvlgTreeNode[T]', key: T) -> 'None | AvlgTreeNode[T]':
        if node is None:
            # only reachable if key compares inconsistently; the caller already found it
            return None
        if key < node.val:
            node.left = self._delete(node.left, key)
        elif node.val < key:
            node.right = self._delete(node.right, key)
        elif node.left is None:
            # right may be None as well, in which case the node just disappears
            return node.right
        elif node.right is None:
            return node.left
        else:
            # two children: take over the successor's key, then remove the successor, which has no left child
            successor = node.right
            while successor.left is not None:
                successor = successor.left
            node.val = successor.val
            node.right = self._delete(node.right, successor.val)
        node._update_node_height()
        return self._rebalance_deleted(node)

    def delete(self, key: T) -> Optional[T]:
        """Delete key from the tree. Return the key that was stored, or None if it was not in the tree. Raises
        EmptyTreeError if the tree is empty.
        """
        if self._root is None:
            raise EmptyTreeError('delete on an empty tree')
        node = self._find(key)
        if node is None:
            logger.debug('delete of %s: not in tree', key)
            return None
        removed = node.val
        self._count -= 1
        self._root = self._delete(self._root, key)
        return removed

    def satisfies_ordering(self) -> bool:
        """Check the binary search tree condition between every node and its children. Walks the whole tree, so this
        is meant for testing.
        """
        def _ordered(node: 'None | AvlgTreeNode[T]') -> bool:
            if node is None:
                return True
            if node.left is not None and not node.left.val < node.val:
                return False
            if node.right is not None and not node.val < node.right.val:
                return False
            return _ordered(node.left) and _ordered(node.right)
        return _ordered(self._root)

    def satisfies_balance(self) -> bool:
        """Check that the tree is ordered and that no node has an imbalance greater than max_imbalance. Walks the
        whole tree, so this is meant for testing.
        """
        def _balanced(node: 'None | AvlgTreeNode[T]') -> bool:
            if node is None:
                return True
            if abs(balance_of(node)) > self._max_imbalance:
                return False
            return _balanced(node.left) and _balanced(node.right)
        return self.satisfies_ordering() and _balanced(self._root)

    @staticmethod
    def test(max_imbalance=DEFAULT_MAX_IMBALANCE, iters=1, iters_per_iter=1000, delete_prob=.3, print_time=True):
        """Run tests. Will throw an AssertionError if there is an error."""
        start_time = time.time()
        for _ in range(iters):
            vals: set[int] = set()
            tree: AvlgTree[int] = AvlgTree(max_imbalance)
            assert(len(tree) == 0)
            assert(tree.is_empty())
            assert(tree.height() == -1)
            for _ in range(iters_per_iter):
                if random.random() <= delete_prob and vals:
                    # making a random choice from a set is a O(N) operation, but for a test, it's fine
                    val = random.choice(tuple(vals))
                    assert(tree.delete(val) == val)
                    vals.remove(val)
                    assert(tree.search(val) is None if vals else tree.is_empty())
                else:
                    val = random.randint(-100000, 100000)
                    # duplicate keys are not supported
                    if val in vals:
                        continue
                    tree.insert(val)
                    vals.add(val)
                    assert(tree.search(val) == val)
                assert(len(tree) == len(vals))
                assert(tree.satisfies_balance())
            stack = [tree._root] if tree._root is not None else []
            while stack:
                node = stack.pop()
                # the cached height should match the real one
                assert(node.height == node._calculate_height())
                assert(abs(node._calculate_balance()) <= max_imbalance)
                stack.extend(node.get_children())
            for val in vals:
                assert(val in tree)
                assert(tree.delete(val) == val)
                assert(tree.satisfies_balance())
            # after deleting everything, the tree should be empty
            assert(len(tree) == 0)
            assert(tree.is_empty())
            assert(tree.height() == -1)
        total_time = time.time() - start_time
        if print_time:
            print(f'Test successful for max imbalance {max_imbalance} with {iters} iterations and {iters_per_iter} '
                  f'steps per iteration')
            print(f'Total time of {total_time:.2f}s and average time of {(total_time / iters):.2f}s per iteration')


if __name__ == '__main__':
    for g in (1, 2, 3):
        AvlgTree.test(g)

from abc import ABC, abstractmethod
from typing import List, Sequence

from fileprompt.gitignore import IgnoreFilter


class Picker(ABC):
    """
    Abstract base class for narrowing a selection down to the paths a copy job should use.
    Concrete strategies should implement the `pick` method.
    """
    @abstractmethod
    def pick(self, paths: Sequence[str], ignore_filter: IgnoreFilter) -> List[str]:
        """
        Given the selected absolute paths, return the paths to copy.
        An empty list means the user picked nothing.
        """


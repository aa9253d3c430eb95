import textwrap
from abc import ABC
from abc import abstractmethod
from dataclasses import dataclass

HELP_RULER = '_' * 80


def format_help(text: str) -> str:
    return f'{HELP_RULER}\n\n{textwrap.dedent(text).strip()}\n'


class FrameworkException(AssertionError, RuntimeError):
    pass


class Error(ABC, FrameworkException):
    """Known problem with input, config or database; comes with a help text for the user"""

    def __str__(self) -> str:
        if not self.__doc__:
            raise NotImplementedError(f'{self.__class__.__name__} has no docstring')
        return self.__doc__ + ' -> ' + ' '.join(str(a) for a in self.args)

    def help(self) -> str:
        return format_help(self._help())

    @abstractmethod
    def _help(self) -> str: ...


@dataclass(repr=False)
class ConfigurationError(Error):
    """Indexer YAML config is invalid"""

    msg: str

    def _help(self) -> str:
        return f"""
            {self.msg}

            Check the config file passed with `-c` and environment variables it refers to.
        """


@dataclass(repr=False)
class MalformedInputError(Error):
    """Event contains a malformed value"""

    msg: str
    value: str = ''

    def _help(self) -> str:
        return f"""
            {self.msg}

              value: `{self.value}`

            The event was dropped; indexed state was not modified.
        """


@dataclass(repr=False)
class StoreWriteError(Error):
    """Failed to write an entity to the database"""

    model: str
    pk: str
    msg: str

    def _help(self) -> str:
        return f"""
            Failed to save `{self.model}` with key `{self.pk}`: {self.msg}

            The event was not applied; all writes made while processing it were rolled back.
        """


@dataclass(repr=False)
class OutOfOrderEventError(Error):
    """Events must be delivered in block and log order"""

    event_id: str
    last_event_id: str

    def _help(self) -> str:
        return f"""
            Event `{self.event_id}` arrived after `{self.last_event_id}`.

            Subdomain counts and migration checks are only correct when events are applied in
            increasing `blockNumber-logIndex` order. Fix the event source and reindex from scratch.
        """

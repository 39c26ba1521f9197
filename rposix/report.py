"""Where the convenience calls send their failures

A convenience call which fails ends the test, or whatever else is driving the DUT; how
it does that is up to the Reporter. In a unittest, `TestCaseReporter` fails the
running test; anywhere else, `RaisingReporter` raises `PosixCallFailed`.

"""
from __future__ import annotations
import abc
import logging
import typing as t
import unittest

__all__ = [
    "Reporter",
    "PosixCallFailed",
    "RaisingReporter",
    "TestCaseReporter",
]

# hide our frames from unittest tracebacks, so failures point at the test's own line
__unittest = True

logger = logging.getLogger(__name__)

class Reporter:
    "A sink for failures, and for notes about what's happening"
    @abc.abstractmethod
    def fatal(self, message: str) -> t.NoReturn:
        "Report a failure which the caller can't continue from; never returns"
        pass

    def note(self, message: str) -> None:
        logger.info("%s", message)

class PosixCallFailed(Exception):
    "A call on the DUT failed, and the caller asked for that to be fatal"
    pass

class RaisingReporter(Reporter):
    def fatal(self, message: str) -> t.NoReturn:
        raise PosixCallFailed(message)

class TestCaseReporter(Reporter):
    "Fails the running unittest test case"
    # not a test, despite the name
    __test__ = False

    def __init__(self, testcase: unittest.TestCase) -> None:
        self.testcase = testcase

    def fatal(self, message: str) -> t.NoReturn:
        self.testcase.fail(message)

    def __str__(self) -> str:
        return f"TestCaseReporter({self.testcase.id()})"

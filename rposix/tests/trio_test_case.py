"A trio-enabled variant of unittest.TestCase"
import trio
import unittest
import contextlib
import functools
import outcome
import sys
import types
import typing as t
import warnings

@contextlib.contextmanager
def raise_unraisables() -> t.Iterator[None]:
    unraisables: t.List[t.Any] = []
    try:
        orig_unraisablehook, sys.unraisablehook = sys.unraisablehook, unraisables.append
        yield
    finally:
        sys.unraisablehook = orig_unraisablehook
        if len(unraisables) == 1:
            raise unraisables[0].exc_value
        elif unraisables:
            raise BaseExceptionGroup("unraisable exceptions during test",
                                     [unr.exc_value for unr in unraisables])

class TrioTestCase(unittest.TestCase):
    "A trio-enabled variant of unittest.TestCase"
    nursery: trio.Nursery

    async def asyncSetUp(self) -> None:
        "Asynchronously set up resources for tests in this TestCase"
        pass

    async def asyncTearDown(self) -> None:
        "Asynchronously clean up resources for tests in this TestCase"
        pass

    def make_clock(self) -> t.Optional[trio.abc.Clock]:
        "Override to run the test under a different clock, such as trio.testing.MockClock"
        return None

    def __init__(self, methodName='runTest') -> None:
        # pytest constructs each TestCase class once with the default name, to look for tests
        if not hasattr(type(self), methodName):
            super().__init__(methodName)
            return
        test = getattr(type(self), methodName)
        @functools.wraps(test)
        async def test_with_setup() -> None:
            async with trio.open_nursery() as nursery:
                self.nursery = nursery
                await self.asyncSetUp()
                test_result = await outcome.acapture(test, self)
                teardown_result = await outcome.acapture(self.asyncTearDown)
                nursery.cancel_scope.cancel()
            # unwrap outside the nursery, so failures aren't wrapped in an exception group
            if isinstance(test_result, outcome.Error) and isinstance(teardown_result, outcome.Error):
                # have to merge the exceptions if they both throw
                raise BaseExceptionGroup("test and teardown both failed",
                                         [test_result.error, teardown_result.error])
            test_result.unwrap()
            teardown_result.unwrap()
        @functools.wraps(test_with_setup)
        def sync_test_with_setup(self) -> None:
            # Throw an exception if there were any "coroutine was never awaited" warnings, to fail the test.
            # See https://github.com/python-trio/pytest-trio/issues/86
            # We also need raise_unraisables, otherwise the exception is suppressed, since it's in __del__
            with raise_unraisables():
                # Restore the old warning filter after the test.
                with warnings.catch_warnings():
                    warnings.filterwarnings('error', message='.*was never awaited', category=RuntimeWarning)
                    trio.run(test_with_setup, clock=self.make_clock())
        setattr(self, methodName, types.MethodType(sync_test_with_setup, self))
        super().__init__(methodName)

class Test(unittest.TestCase):
    def test_coro_warning(self) -> None:
        class Test(TrioTestCase):
            async def test(self):
                trio.sleep(0)
        with self.assertRaises(RuntimeWarning):
            Test('test').test()

    def test_failure_surfaces(self) -> None:
        class Test(TrioTestCase):
            async def test(self):
                self.fail("expected")
        with self.assertRaises(AssertionError):
            Test('test').test()

    def test_default_method_name(self) -> None:
        class Test(TrioTestCase):
            async def test(self):
                pass
        # test runners construct it this way when collecting
        Test()
        Test('test').test()

"""
Action adapter behavioral tests (classification, binding, invocation, execution).

Scope
- Validate handler classification for every supported shape and its faults.
- Validate fail-slow binding: every mismatch of one execution is reported at once.
- Validate result dispatch: returned errors, info text, structured output.
- Validate the Action wrapper: arity, required flags, friendly remapping, shell mode.

Conventions
- Test method names follow CamelCase per project convention.
- Output is captured through a StringIO destination carried by the Context.
"""
import io
import unittest
from unittest import TestCase

from bite import (
    Action,
    ActionException,
    ArityError,
    Context,
    FaultCode,
    Kind,
    OptionSet,
    RequiredFlagsError,
    ReturnKind,
    ShapeError,
    UInt16,
    UnboundArgumentsError,
    action,
    bind,
    check_arity,
    classify,
    describe,
    invoke,
)
from bite.actions import _memoized
from bite.utils import Unset


def flags(**values):
    """option set with one string/int/bool option per keyword, set to its value."""
    options = OptionSet("test")
    for name, value in values.items():
        kind = {bool: Kind.BOOL, int: Kind.INT}.get(type(value), Kind.STRING)
        options.add(name, kind)
        options.set(name, value)
    return options


class TestClassify(TestCase):
    """Handler classification against the set-option count."""

    def testNoParamsNoReturns(self) -> None:
        def handler() -> None:
            pass

        descriptor = classify(handler, 0)
        self.assertTrue(descriptor.no_params)
        self.assertTrue(descriptor.no_returns)
        self.assertEqual(descriptor.first_return, ReturnKind.NONE)

    def testContextAndPositionals(self) -> None:
        def handler(context: Context, arguments: list[str]) -> Exception | None:
            pass

        descriptor = classify(handler, 3)
        self.assertTrue(descriptor.first_is_context)
        self.assertFalse(descriptor.first_is_positional)
        self.assertTrue(descriptor.last_is_positional)
        self.assertEqual(descriptor.first_return, ReturnKind.ERROR)
        self.assertFalse(descriptor.second_is_error)

    def testOneToOneWithObjectAndError(self) -> None:
        def handler(name: str, age: int, active: bool) -> tuple[object, Exception | None]:
            pass

        descriptor = classify(handler, 3)
        self.assertFalse(descriptor.reserves_first)
        self.assertFalse(descriptor.last_is_positional)
        self.assertEqual(descriptor.first_return, ReturnKind.OBJECT)
        self.assertTrue(descriptor.second_is_error)

    def testTextReturn(self) -> None:
        def handler(arguments: list[str]) -> str:
            pass

        self.assertEqual(classify(handler, 0).first_return, ReturnKind.TEXT)

    def testSinglePositionalParameterWinsOverEqualCount(self) -> None:
        def handler(arguments: list[str]):
            pass

        descriptor = classify(handler, 1)
        self.assertTrue(descriptor.first_is_positional)
        self.assertTrue(descriptor.last_is_positional)

    def testContextTypeDominatesEqualCount(self) -> None:
        def handler(context: Context, name: str):
            pass

        self.assertTrue(classify(handler, 2).first_is_context)

    def testCountMismatchRaises(self) -> None:
        def handler(name: str):
            pass

        with self.assertRaises(ShapeError) as caught:
            classify(handler, 2)
        self.assertEqual(caught.exception.code, FaultCode.SHAPE_MISMATCH)
        self.assertIn("expected 2 but got 1", str(caught.exception))

    def testTooManyOutputsRaises(self) -> None:
        def handler() -> tuple[str, str, Exception]:
            pass

        with self.assertRaises(ShapeError) as caught:
            classify(handler, 0)
        self.assertEqual(caught.exception.code, FaultCode.TOO_MANY_OUTPUTS)

    def testSecondOutputMustBeError(self) -> None:
        def handler() -> tuple[str, str]:
            pass

        with self.assertRaises(ShapeError) as caught:
            classify(handler, 0)
        self.assertEqual(caught.exception.code, FaultCode.INVALID_SECOND_OUTPUT)

    def testVariadicParametersRaise(self) -> None:
        def handler(*values):
            pass

        with self.assertRaises(ShapeError) as caught:
            classify(handler, 1)
        self.assertEqual(caught.exception.code, FaultCode.UNSUPPORTED_PARAMETER)

    def testNonCallableRaises(self) -> None:
        with self.assertRaises(ShapeError) as caught:
            classify("handler", 0)
        self.assertEqual(caught.exception.code, FaultCode.INVALID_HANDLER)

    def testDescriptorsAreMemoized(self) -> None:
        def handler(context: Context):
            pass

        self.assertIs(describe(handler, 2), describe(handler, 2))
        self.assertIsNot(describe(handler, 2), describe(handler, 3))

    def testDescriptorCacheIsBounded(self) -> None:
        self.assertEqual(_memoized.cache_info().maxsize, 256)
        for count in range(300):
            def handler(context: Context):
                pass

            describe(handler, 1)
        self.assertLessEqual(_memoized.cache_info().currsize, 256)


class TestBind(TestCase):
    """Frame construction from live options."""

    def testOneToOneBinding(self) -> None:
        def handler(name: str, age: int, active: bool):
            pass

        options = flags(name="alice", age=30, active=True)
        frame = bind(classify(handler, options.count), handler, options)
        self.assertEqual(frame, ["alice", 30, True])

    def testContextAndArgumentsAreFilled(self) -> None:
        def handler(context: Context, name: str, arguments: list[str]):
            pass

        context = Context("tool")
        options = flags(name="alice")
        frame = bind(classify(handler, options.count), handler, options, context, ["a", "b"])
        self.assertIs(frame[0], context)
        self.assertEqual(frame[1:], ["alice", ["a", "b"]])

    def testEveryMismatchIsReported(self) -> None:
        def handler(name: int, age: str):
            pass

        options = flags(name="alice", age=30)
        with self.assertRaises(UnboundArgumentsError) as caught:
            bind(classify(handler, options.count), handler, options)
        self.assertEqual(caught.exception.mismatches, [(0, "int", "name"), (1, "str", "age")])
        self.assertTrue(str(caught.exception).startswith("2 handler arguments could not be bound"))

    def testSizedKindsMatchExactly(self) -> None:
        def handler(port: UInt16, retries: int):
            pass

        options = OptionSet("test")
        options.add("port", Kind.UINT16)
        options.add("retries", Kind.UINT8)
        options.update(port="8080", retries="3")
        with self.assertRaises(UnboundArgumentsError) as caught:
            bind(classify(handler, options.count), handler, options)
        self.assertEqual(caught.exception.mismatches, [(1, "int", "retries")])

    def testDefaultsFillUnsetParameters(self) -> None:
        def handler(context: Context, name: str, age: int = 7):
            pass

        options = flags(name="alice")
        frame = bind(classify(handler, options.count), handler, options)
        self.assertEqual(frame[1:], ["alice", 7])

    def testMissingParameterIsReported(self) -> None:
        def handler(context: Context, name: str, age: int):
            pass

        options = flags(name="alice")
        with self.assertRaises(UnboundArgumentsError) as caught:
            bind(classify(handler, options.count), handler, options)
        fault, = caught.exception.exceptions
        self.assertEqual(fault.code, FaultCode.MISSING_ARGUMENT)
        self.assertEqual(fault.slot, 2)

    def testUnsupportedKindIsReported(self) -> None:
        def handler(context: Context, timeout: str):
            pass

        options = OptionSet("test")
        options.add("timeout", "duration")
        options.set("timeout", "5s")
        with self.assertRaises(UnboundArgumentsError) as caught:
            bind(classify(handler, options.count), handler, options)
        fault, = caught.exception.exceptions
        self.assertEqual(fault.code, FaultCode.UNSUPPORTED_KIND)
        self.assertEqual(fault.flag, "timeout")

    def testOptionsWithoutSlotAreReported(self) -> None:
        def handler(name: str, arguments: list[str]):
            pass

        options = flags(name="alice", age=3, active=False)
        with self.assertRaises(UnboundArgumentsError) as caught:
            bind(classify(handler, options.count), handler, options)
        self.assertEqual([fault.flag for fault in caught.exception.exceptions], ["age", "active"])
        self.assertTrue(all(fault.code == FaultCode.NO_PARAMETER_LEFT for fault in caught.exception.exceptions))

    def testContextHandlersIgnoreExtraOptions(self) -> None:
        def handler(context: Context, arguments: list[str]):
            pass

        options = flags(name="alice", age=3, active=True)
        frame = bind(classify(handler, options.count), handler, options, Unset, ["x"])
        self.assertEqual(frame[1], ["x"])

    def testEqualCountBindsLastParameterToOption(self) -> None:
        def handler(context: Context, tags: list[str]):
            pass

        options = OptionSet("test")
        options.add("tags", Kind.STRING_SLICE)
        options.add("name")
        options.update(name="alice", tags="a,b")
        frame = bind(classify(handler, options.count), handler, options)
        self.assertEqual(frame[1], ["a", "b"])

    def testNoParamsGivesEmptyFrame(self) -> None:
        def handler():
            pass

        options = flags(name="alice")
        self.assertEqual(bind(classify(handler, options.count), handler, options), [])


class TestInvoke(TestCase):
    """Result dispatch."""

    def setUp(self) -> None:
        self.out = io.StringIO()

    def context(self, **metadata):
        return Context("tool", out=self.out, **metadata)

    def testReturnedErrorIsRaisedUnchanged(self) -> None:
        failure = ValueError("boom")

        def handler(context: Context, arguments: list[str]) -> Exception | None:
            return failure

        with self.assertRaises(ValueError) as caught:
            action(handler)(self.context(), ["x"])
        self.assertIs(caught.exception, failure)

    def testNoErrorReturned(self) -> None:
        def handler() -> Exception | None:
            return None

        action(handler)(self.context())
        self.assertEqual(self.out.getvalue(), "")

    def testSecondErrorTakesPrecedence(self) -> None:
        failure = RuntimeError("late failure")

        def handler() -> tuple[dict, Exception | None]:
            return {"name": "alice"}, failure

        with self.assertRaises(RuntimeError) as caught:
            action(handler)(self.context(output="json"))
        self.assertIs(caught.exception, failure)
        self.assertEqual(self.out.getvalue(), "")

    def testTextIsPrintedAsInfo(self) -> None:
        def handler(arguments: list[str]) -> str:
            return "hello %s" % ", ".join(arguments)

        action(handler)(self.context(), ["a", "b"])
        self.assertEqual(self.out.getvalue(), "hello a, b\n")

    def testTextIsHiddenForMachineOutput(self) -> None:
        def handler() -> str:
            return "hello"

        action(handler)(self.context(output="json"))
        self.assertEqual(self.out.getvalue(), "")

    def testObjectIsRenderedAsJson(self) -> None:
        def handler() -> dict:
            return {"name": "alice", "tags": ["a<b"]}

        action(handler)(self.context(output="json", pretty=False))
        self.assertEqual(self.out.getvalue(), '{"name":"alice","tags":["a<b"]}\n')

    def testQuerySelectsFirstElement(self) -> None:
        def handler() -> list:
            return [{"n": 1}, {"n": 2}]

        action(handler)(self.context(output="json", query="[0]"))
        self.assertEqual(self.out.getvalue(), '{\n  "n": 1\n}\n')

    def testObjectIsRenderedAsYaml(self) -> None:
        def handler() -> dict:
            return {"name": "alice", "port": UInt16(8080)}

        action(handler)(self.context(output="yaml"))
        self.assertEqual(self.out.getvalue(), "name: alice\nport: 8080\n")

    def testNoneObjectPrintsNothing(self) -> None:
        def handler() -> tuple[dict, Exception | None]:
            return None, None

        action(handler)(self.context(output="json"))
        self.assertEqual(self.out.getvalue(), "")

    def testHandlerWithoutReturnsIsCalled(self) -> None:
        calls = []

        def handler(name: str) -> None:
            calls.append(name)
            return "ignored"

        options = flags(name="alice")
        invoke(handler, bind(classify(handler, 1), handler, options), classify(handler, 1), self.context())
        self.assertEqual(calls, ["alice"])
        self.assertEqual(self.out.getvalue(), "")

    def testUnannotatedResultIsRendered(self) -> None:
        def handler():
            return [{"name": "alice"}, {"name": "bob"}]

        descriptor = classify(handler, 0)
        self.assertFalse(descriptor.no_returns)
        self.assertEqual(descriptor.first_return, ReturnKind.OBJECT)
        action(handler)(self.context(output="json", pretty=False))
        self.assertEqual(self.out.getvalue(), '[{"name":"alice"},{"name":"bob"}]\n')

    def testUnannotatedTextIsRenderedAsObject(self) -> None:
        def handler():
            return "hello"

        action(handler)(self.context(output="json"))
        self.assertEqual(self.out.getvalue(), '"hello"\n')

    def testRaisedErrorsPropagate(self) -> None:
        def handler():
            raise KeyError("missing")

        with self.assertRaises(KeyError):
            action(handler)(self.context())


class TestAction(TestCase):
    """Execution through the Action wrapper."""

    def setUp(self) -> None:
        self.out = io.StringIO()

    def testDecoratorForms(self) -> None:
        options = flags(name="alice")

        @action(options, name="greet")
        def greet(name: str) -> str:
            return f"hi {name}"

        self.assertIsInstance(greet, Action)
        self.assertEqual(greet.name, "greet")
        greet(Context(out=self.out))
        self.assertEqual(self.out.getvalue(), "hi alice\n")

    def testRepeatedExecutionsReadFreshValues(self) -> None:
        options = flags(name="alice")
        seen = []

        @action(options=options)
        def greet(name: str):
            seen.append(name)

        greet(Context(out=self.out))
        options.set("name", "bob")
        greet(Context(out=self.out))
        self.assertEqual(seen, ["alice", "bob"])

    def testOutputShapeIsCheckedAtDeclaration(self) -> None:
        def handler() -> tuple[str, str, str]:
            pass

        with self.assertRaises(ShapeError):
            Action(handler)

    def testArityIsChecked(self) -> None:
        @action(min_args=1, max_args=1)
        def show(arguments: list[str]):
            pass

        with self.assertRaises(ArityError) as caught:
            show(Context(out=self.out), [])
        self.assertEqual(str(caught.exception), "show command expected only one argument but got nothing")

    def testRequiredFlagsAreChecked(self) -> None:
        options = OptionSet("test")
        options.add("name")

        @action(options, required=lambda: {"name": options.get("name")}, example="tool --name alice")
        def tool(context: Context):
            pass

        with self.assertRaises(RequiredFlagsError) as caught:
            tool(Context(out=self.out))
        self.assertEqual(str(caught.exception), 'required flag "name" not set\nexample:\n\ttool --name alice')

    def testFriendlyMessagesReplaceFaults(self) -> None:
        @action(min_args=1)
        def show(arguments: list[str]):
            pass

        context = Context(out=self.out, friendly={FaultCode.ARITY_MISMATCH: "give me something to show"})
        with self.assertRaises(ActionException) as caught:
            show.run(context, [])
        self.assertEqual(str(caught.exception), "give me something to show")
        self.assertIsInstance(caught.exception.__cause__, ArityError)

    def testShellModeExits(self) -> None:
        def handler() -> Exception | None:
            return ValueError("boom")

        with self.assertRaises(SystemExit) as caught:
            Action(handler).run(Context(out=self.out, shell=True, colorful=False))
        self.assertEqual(caught.exception.code, 1)


class TestCheckArity(TestCase):
    """Positional argument range messages."""

    def testMessages(self) -> None:
        cases = [
            (([], 1, 1), "echo command expected only one argument but got nothing"),
            ((["a"], 2, 2), "echo command expected exactly 2 arguments but got 1"),
            (([], 1, 0), "echo command expected a single argument but got nothing"),
            ((["a"], 3, 0), "echo command expected 3 arguments but got 1"),
            (([], 1, 3), "echo command expected at least one argument"),
            ((["a"], 2, 3), "echo command expected at least 2 arguments but got 1"),
            ((["a", "b"], 0, 1), "echo command can not accept more than 1 arguments"),
        ]
        for (arguments, minimum, maximum), message in cases:
            with self.subTest(minimum=minimum, maximum=maximum):
                with self.assertRaises(ArityError) as caught:
                    check_arity("echo", arguments, minimum, maximum)
                self.assertEqual(str(caught.exception), message)

    def testWithinRange(self) -> None:
        check_arity("echo", ["a", "b"], 1, 3)
        check_arity("echo", ["a"] * 10, 0, 0)


if __name__ == "__main__":
    unittest.main()

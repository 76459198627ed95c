#!/usr/bin/env python3
"""
polytac.py
Single-file expression compiler pipeline (cursor → recursive-descent parser
→ TAC IR → evaluator) for arithmetic and polynomial expressions.

Implicit multiplication is inferred from juxtaposition (`3x`, `x(y+1)`), and an
optional call table lowers reserved two-argument calls like `raghav(a, b)` to a
single fused instruction.
"""

import argparse
import logging
import string
import sys
from collections import namedtuple

import numpy as np

logger = logging.getLogger(__name__)

# =====================================================
# GLOBAL HELPERS (limits, errors)
# =====================================================
MAX_DEPTH = 100
END = ''

LETTERS = frozenset(string.ascii_letters)
DIGITS = frozenset(string.digits)
SYMBOLS = frozenset('+-*/^().,')


class PolyTacError(Exception):
    phase = "PolyTac"

    def __init__(self, msg, position=None):
        super().__init__(msg)
        self.msg = msg
        self.position = position

    def __str__(self):
        if self.position is not None:
            return f"{self.phase} error (col {self.position + 1}): {self.msg}"
        return f"{self.phase} error: {self.msg}"


class ExprSyntaxError(PolyTacError):
    phase = "Syntax"


class NestingTooDeep(ExprSyntaxError):
    phase = "Resource"


class EvaluationError(PolyTacError):
    phase = "Runtime"


def is_letter(ch):
    return ch in LETTERS


def is_digit(ch):
    return ch in DIGITS


# =====================================================
# CURSOR
# =====================================================
class Cursor:
    """Read position over an immutable expression string."""

    def __init__(self, text):
        self.text = text
        self.pos = 0

    def peek(self):
        if self.pos < len(self.text):
            return self.text[self.pos]
        return END

    def advance(self):
        ch = self.peek()
        self.pos += 1
        return ch

    def skip_spaces(self):
        # only ' ' is insignificant; tabs and newlines are invalid characters
        while self.peek() == ' ':
            self.pos += 1

    def read_while(self, accept):
        start = self.pos
        while self.peek() != END and accept(self.peek()):
            self.pos += 1
        return self.text[start:self.pos]


class TempAllocator:
    def __init__(self, prefix='t'):
        self.prefix = prefix
        self.count = 0

    def new(self):
        name = f"{self.prefix}{self.count}"
        self.count += 1
        return name


# =====================================================
# IR (TAC) INSTRUCTIONS
# =====================================================
ADD = 'ADD'
SUB = 'SUB'
MUL = 'MUL'
DIV = 'DIV'
POW = 'POW'
FUSED_BINARY = 'FUSED_BINARY'


class Instruction(namedtuple('Instruction', ['op', 'arg1', 'arg2', 'dest'])):
    __slots__ = ()

    def __repr__(self):
        return format_instruction(self)


Compilation = namedtuple('Compilation', ['instructions', 'result'])


def format_instruction(ins, value=None):
    line = f"{ins.op} {ins.arg1}"
    if ins.arg2 is not None:
        line += f" {ins.arg2}"
    line += f" -> {ins.dest}"
    if value is not None:
        line += f" = {format_value(value)}"
    return line


def format_value(value):
    return f"{value:g}"


def instruction_to_dict(ins):
    return {"op": ins.op, "arg1": ins.arg1, "arg2": ins.arg2, "dest": ins.dest}


# =====================================================
# BUILTIN CALLS (reserved name -> opcode)
# =====================================================
class CallTable:
    """Reserved call names lowered to a single two-operand instruction.

    The formula itself belongs to the opcode (see OPERATIONS); the table only
    decides which identifiers are call syntax and what they lower to.
    """

    def __init__(self, calls=None):
        self.calls = dict(calls or {})
        for name, op in self.calls.items():
            if not name or not all(is_letter(ch) for ch in name):
                raise ValueError(f"call name must be letters only: {name!r}")
            if op not in OPERATIONS:
                raise ValueError(f"call {name!r} maps to unknown operation {op!r}")

    def __contains__(self, name):
        return name in self.calls

    def __bool__(self):
        return bool(self.calls)

    def opcode(self, name):
        return self.calls[name]


EXTENDED_CALLS = {'raghav': FUSED_BINARY}


# =====================================================
# PARSER / COMPILER (recursive-descent)
# =====================================================
class ExpressionCompiler:
    """Compiles one expression into a list of TAC instructions.

    Each precedence layer appends instructions to a shared list and returns
    the name of the variable holding its result. A compiler instance is good
    for exactly one call to `parse`.
    """

    def __init__(self, text, calls=None, max_depth=MAX_DEPTH):
        self.cursor = Cursor(text)
        self.temps = TempAllocator()
        self.calls = calls if isinstance(calls, CallTable) else CallTable(calls)
        self.max_depth = max_depth
        self.depth = 0
        self.instructions = []

    def error(self, msg):
        raise ExprSyntaxError(msg, self.cursor.pos)

    def emit(self, op, arg1, arg2):
        dest = self.temps.new()
        ins = Instruction(op, arg1, arg2, dest)
        self.instructions.append(ins)
        logger.debug("emit %r", ins)
        return dest

    def parse(self):
        result = self.expression()
        self.cursor.skip_spaces()
        ch = self.cursor.peek()
        if ch != END:
            if not (is_letter(ch) or is_digit(ch) or ch in SYMBOLS):
                self.error(f"invalid character: {ch!r}")
            self.error("unexpected input after expression")
        return Compilation(tuple(self.instructions), result)

    # Expressions: precedence climbing via separate functions
    def expression(self):
        left = self.term()
        self.cursor.skip_spaces()
        while self.cursor.peek() in ('+', '-'):
            op = ADD if self.cursor.advance() == '+' else SUB
            right = self.term()
            left = self.emit(op, left, right)
            self.cursor.skip_spaces()
        return left

    def term(self):
        left = self.power()
        self.cursor.skip_spaces()
        while self.cursor.peek() in ('*', '/'):
            op = MUL if self.cursor.advance() == '*' else DIV
            right = self.power()
            left = self.emit(op, left, right)
            self.cursor.skip_spaces()
        return left

    def power(self):
        # a single '^' per call: `a^b^c` leaves the second '^' unconsumed
        base = self.factor()
        self.cursor.skip_spaces()
        if self.cursor.peek() == '^':
            self.cursor.advance()
            exponent = self.factor()
            return self.emit(POW, base, exponent)
        return base

    def factor(self):
        self.depth += 1
        if self.depth > self.max_depth:
            raise NestingTooDeep(
                f"expression nesting exceeds maximum depth of {self.max_depth}",
                self.cursor.pos)
        try:
            return self._factor()
        finally:
            self.depth -= 1

    def _factor(self):
        cur = self.cursor
        cur.skip_spaces()
        ch = cur.peek()
        if ch == '(':
            cur.advance()
            result = self.expression()
            if cur.peek() != ')':
                self.error("missing closing parenthesis")
            cur.advance()
            return result
        if is_digit(ch) or ch == '.':
            number = cur.read_while(lambda c: is_digit(c) or c == '.')
            return self.juxtapose(number)
        if is_letter(ch):
            name = cur.read_while(is_letter)
            if name in self.calls and cur.peek() == '(':
                return self.call(name)
            return self.juxtapose(name)
        if ch == END:
            self.error("invalid character: unexpected end of input")
        self.error(f"invalid character: {ch!r}")

    def juxtapose(self, left):
        # implicit MUL; the recursive factor call consumes the rest greedily
        self.cursor.skip_spaces()
        ch = self.cursor.peek()
        if is_letter(ch) or ch == '(':
            right = self.factor()
            return self.emit(MUL, left, right)
        return left

    def call(self, name):
        cur = self.cursor
        cur.advance()  # '('
        first = self.expression()
        if cur.peek() != ',':
            self.error("expected ','")
        cur.advance()
        second = self.expression()
        if cur.peek() != ')':
            self.error("missing closing parenthesis in call")
        cur.advance()
        return self.emit(self.calls.opcode(name), first, second)


def compile_expression(text, calls=None, max_depth=MAX_DEPTH):
    """Compile `text`; raises ExprSyntaxError on malformed input."""
    try:
        compilation = ExpressionCompiler(text, calls, max_depth).parse()
    except RecursionError:
        # max_depth set above what the interpreter stack can hold
        raise NestingTooDeep("expression nesting exceeds the interpreter recursion limit") from None
    logger.debug("compiled %r into %d instruction(s), result in %s",
                 text, len(compilation.instructions), compilation.result)
    return compilation


# =====================================================
# EVALUATOR
# =====================================================
def _fused_binary(a, b):
    return np.power(np.add(a, b), 2.0)


OPERATIONS = {
    ADD: np.add,
    SUB: np.subtract,
    MUL: np.multiply,
    DIV: np.divide,
    POW: np.power,
    FUSED_BINARY: _fused_binary,
}

Evaluation = namedtuple('Evaluation', ['steps', 'value', 'variables'])


def is_numeric(operand):
    if not operand:
        return False
    if is_digit(operand[0]) or operand[0] == '.':
        return True
    return operand[0] == '-' and len(operand) > 1 and is_digit(operand[1])


def required_variables(compilation):
    """Single-letter variables the driver must supply, in discovery order."""
    if isinstance(compilation, Compilation):
        instructions = compilation.instructions
        operands = [compilation.result] if not instructions else []
    else:
        instructions = compilation
        operands = []
    for ins in instructions:
        operands.extend((ins.arg1, ins.arg2))
    names = []
    for operand in operands:
        if (operand is not None and len(operand) == 1 and is_letter(operand)
                and operand not in names):
            names.append(operand)
    return names


class Evaluator:
    def __init__(self, variables=None):
        self.variables = {}
        for name, v in (variables or {}).items():
            try:
                if isinstance(v, (bool, np.bool_)):
                    raise TypeError(name)
                self.variables[name] = float(v)
            except (TypeError, ValueError):
                raise EvaluationError(f"invalid value for variable '{name}': {v!r}") from None

    def value_of(self, operand):
        if is_numeric(operand):
            try:
                return np.float64(operand)
            except ValueError:
                raise EvaluationError(f"invalid numeric literal '{operand}'") from None
        if operand not in self.variables:
            raise EvaluationError(f"undefined variable '{operand}'")
        return np.float64(self.variables[operand])

    def execute(self, ins):
        func = OPERATIONS.get(ins.op)
        if func is None:
            raise EvaluationError(f"unknown operation: {ins.op}")
        a = self.value_of(ins.arg1)
        b = self.value_of(ins.arg2) if ins.arg2 is not None else np.float64(0.0)
        with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
            res = float(func(a, b))
        self.variables[ins.dest] = res
        logger.debug("%r = %s", ins, format_value(res))
        return res

    def run(self, compilation):
        steps = []
        for ins in compilation.instructions:
            steps.append((ins, self.execute(ins)))
        if steps:
            value = self.variables[compilation.instructions[-1].dest]
        else:
            value = float(self.value_of(compilation.result))
        return Evaluation(steps, value, dict(self.variables))


def evaluate(compilation, variables=None):
    """Run `compilation` in order against a copy of `variables`.

    Accepts a Compilation or a bare instruction list, like required_variables.
    A bare list yields its last destination, so it must not be empty.
    """
    if not isinstance(compilation, Compilation):
        instructions = tuple(compilation)
        if not instructions:
            raise EvaluationError("empty instruction list has no result")
        compilation = Compilation(instructions, instructions[-1].dest)
    return Evaluator(variables).run(compilation)


def json_number(value):
    # inf and nan have no JSON form; `display` carries them as text
    return value if np.isfinite(value) else None


# =====================================================
# COMPILER DRIVER (result dicts)
# =====================================================
def _call_table(extended):
    if isinstance(extended, CallTable):
        return extended
    return CallTable(EXTENDED_CALLS if extended else None)


def compile_source(code, extended=False, max_depth=MAX_DEPTH):
    result = {
        'tac': [],
        'instructions': [],
        'result': None,
        'variables': [],
        'errors': [],
    }
    try:
        compilation = compile_expression(code, _call_table(extended), max_depth)
    except PolyTacError as e:
        logger.info("compilation failed: %s", e)
        result['errors'] = [str(e)]
        return result
    result['tac'] = [format_instruction(ins) for ins in compilation.instructions]
    result['instructions'] = [instruction_to_dict(ins) for ins in compilation.instructions]
    result['result'] = compilation.result
    result['variables'] = required_variables(compilation)
    return result


def evaluate_source(code, variables=None, extended=False, max_depth=MAX_DEPTH):
    result = {
        'tac': [],
        'steps': [],
        'value': None,
        'display': None,
        'errors': [],
    }
    try:
        compilation = compile_expression(code, _call_table(extended), max_depth)
        evaluation = evaluate(compilation, variables)
    except PolyTacError as e:
        logger.info("evaluation failed: %s", e)
        result['errors'] = [str(e)]
        return result
    result['tac'] = [format_instruction(ins, v) for ins, v in evaluation.steps]
    result['steps'] = [dict(instruction_to_dict(ins), value=json_number(v), display=format_value(v))
                       for ins, v in evaluation.steps]
    result['value'] = json_number(evaluation.value)
    result['display'] = format_value(evaluation.value)
    return result


# =====================================================
# INTERACTIVE DRIVER
# =====================================================
MODES = {'1': 'arithmetic', '2': 'polynomial',
         'arithmetic': 'arithmetic', 'polynomial': 'polynomial'}


def parse_assignment(text):
    name, sep, value = text.partition('=')
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {text!r}")
    try:
        return name.strip(), float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid value for {name.strip()}: {value!r}") from None


def build_arg_parser():
    parser = argparse.ArgumentParser(
        prog="polytac",
        description="Compile arithmetic/polynomial expressions to three-address code",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  polytac "2x + 3" -m polynomial --var x=4
  polytac "(1 + 2) * 3" -m arithmetic
  polytac "raghav(a, b)" -m 2 -x
        """,
    )
    parser.add_argument("expression", nargs="?", help="expression to compile")
    parser.add_argument("-m", "--mode", choices=sorted(MODES),
                        help="arithmetic (emit instructions) or polynomial (evaluate)")
    parser.add_argument("-x", "--extended", action="store_true",
                        help="recognise reserved calls such as raghav(a, b)")
    parser.add_argument("--var", action="append", default=[], type=parse_assignment,
                        metavar="NAME=VALUE", help="bind a variable instead of prompting")
    parser.add_argument("--max-depth", type=int, default=MAX_DEPTH, metavar="N",
                        help=f"maximum expression nesting depth (default {MAX_DEPTH})")
    parser.add_argument("-V", "--verbose", action="store_true", help="enable debug logging")
    return parser


def main(argv=None):
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")
    try:
        mode = args.mode or input("Select mode (1: arithmetic, 2: polynomial): ").strip()
        if mode not in MODES:
            raise PolyTacError(f"unknown mode {mode!r}")
        mode = MODES[mode]
        code = args.expression
        if code is None:
            code = input(f"Enter {mode} expression: ")

        compilation = compile_expression(code, _call_table(args.extended), args.max_depth)

        if mode == 'polynomial':
            values = dict(args.var)
            for name in required_variables(compilation):
                if name not in values:
                    raw = input(f"Enter value for {name}: ")
                    try:
                        values[name] = float(raw)
                    except ValueError:
                        raise PolyTacError(f"invalid value for {name}: {raw!r}") from None
            evaluation = evaluate(compilation, values)
            print("Instructions and results:")
            for ins, value in evaluation.steps:
                print(format_instruction(ins, value))
            print(f"Final result: {format_value(evaluation.value)}")
        else:
            print("Generated Instructions:")
            for ins in compilation.instructions:
                print(format_instruction(ins))
    except PolyTacError as e:
        print(e, file=sys.stderr)
    except EOFError:
        print("Input error: unexpected end of input", file=sys.stderr)
    return 0


if __name__ == '__main__':
    sys.exit(main())

#!/usr/bin/env python
"""stepcalclib - Stuff used by stepcalc"""

# ---------------------------
#  The Process in a Nutshell
# ---------------------------
#
#             +------------+     +------------+     +----------+
# [input] >>> | tokenize() | >>> | validate() | >>> | to_rpn() | >>> ...
#          |  +------------+  |  +------------+  |  +----------+  |
#          |                  |                  |                |
#        string         list of tokens      same tokens     tokens in RPN
#
#          +-------------------------------------------+
#  ... >>> | to_infix() <<< reduce_once() until 1 left | >>> [steps]
#          +-------------------------------------------+

import logging
import math
import operator
import re
from decimal import Decimal

logger = logging.getLogger(__name__)

INF = float('inf')
NAN = float('nan')


class CalcError(ValueError):
    """Base class for everything the pipeline raises."""

    def __init__(self, message, pos=None):
        ValueError.__init__(self, message)
        self.pos = pos


class LexError(CalcError):
    pass


class CalcSyntaxError(CalcError):
    def __init__(self, message, rule, pos=None):
        CalcError.__init__(self, message, pos)
        self.rule = rule


class UnbalancedParenthesesError(CalcSyntaxError):
    def __init__(self, message, pos=None):
        CalcSyntaxError.__init__(self, message, 'unbalanced', pos)


class EvalError(CalcError):
    pass


class RenderError(EvalError):
    pass


class Number(float):
    def __new__(cls, value, pos=None):
        self = float.__new__(Number, value)
        self.pos = pos
        return self

    def __str__(self):
        return format_number(self)


class Token(object):
    """The base class for everything that is not a number.

    Do not instantiate this class directly; use one of the classes built
    by create_token_class().
    """
    name = None
    nargs = 0
    priority = 0
    func = None

    def __init__(self, pos=None):
        if self.__class__ in (Token, Operator, Function):
            raise NotImplementedError("%s class is abstract; it cannot be called directly"
                                      % self.__class__.__name__)
        self.pos = pos

    def __call__(self, *args):
        """Apply the token to its operands."""
        return self.__class__.func(*args)

    def __eq__(self, other):
        return self.__class__ is other.__class__

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash(self.__class__)

    def __repr__(self):
        return self.__class__.__name__

    def __str__(self):
        return self.__class__.name


class Operator(Token):
    nargs = 2


class Function(Token):
    nargs = 1


class LeftParenthesis(Token):
    name = '('


class RightParenthesis(Token):
    name = ')'


def create_token_class(base, clsname, name_, priority_, func_):
    """Factory function for creating a new operator or function class."""
    class newtoken(base):
        name = name_
        priority = priority_
        func = staticmethod(func_)
    newtoken.__name__ = clsname
    return newtoken


# IEEE 754 versions of the arithmetic that Python raises on.  The results
# never raise, they turn into inf or nan instead.

def _is_odd_integer(num):
    return math.isfinite(num) and num == int(num) and int(num) % 2 == 1


def divide(num, den):
    """Floating point division where x/0 is +-inf and 0/0 is nan."""
    try:
        return num / den
    except ZeroDivisionError:
        if num == 0 or math.isnan(num):
            return NAN
        return math.copysign(INF, num) * math.copysign(1.0, den)


def power(base, exp):
    try:
        return math.pow(base, exp)
    except OverflowError:
        if base < 0 and _is_odd_integer(exp):
            return -INF
        return INF
    except ValueError:
        # 0 to a negative power, or a negative base to a fractional power
        if base == 0:
            return math.copysign(INF, base) if _is_odd_integer(exp) else INF
        return NAN


def log10(num):
    if num == 0:
        return -INF
    if num < 0:
        return NAN
    return math.log10(num)


def wrap_domain_error(func):
    """Make a math function return nan instead of raising on bad input.

    math.sqrt(-1) or math.sin(inf) raise ValueError ("math domain error"),
    which is not how the calculator reports them.
    """
    def newfunc(num):
        try:
            return func(num)
        except ValueError:
            return NAN
    newfunc.__name__ = func.__name__
    return newfunc


def cotangent(num):
    return divide(1.0, math.tan(num))


binary = {
    '+': create_token_class(Operator, 'Addition',       '+', 1, operator.add),
    '-': create_token_class(Operator, 'Subtraction',    '-', 1, operator.sub),
    '*': create_token_class(Operator, 'Multiplication', '*', 2, operator.mul),
    '/': create_token_class(Operator, 'Division',       '/', 2, divide),
    '^': create_token_class(Operator, 'Exponent',       '^', 3, power),
}

functions = {
    'log':  create_token_class(Function, 'Logarithm',  'log',  0, log10),
    'sin':  create_token_class(Function, 'Sine',       'sin',  0, wrap_domain_error(math.sin)),
    'cos':  create_token_class(Function, 'Cosine',     'cos',  0, wrap_domain_error(math.cos)),
    'tan':  create_token_class(Function, 'Tangent',    'tan',  0, wrap_domain_error(math.tan)),
    'ctg':  create_token_class(Function, 'Cotangent',  'ctg',  0, wrap_domain_error(cotangent)),
    'sqrt': create_token_class(Function, 'SquareRoot', 'sqrt', 0, wrap_domain_error(math.sqrt)),
}


def format_number(value):
    """Convert a float to the string shown in the step trace.

    Uses the shortest digits that round-trip, never switches to
    scientific notation and drops the fractional part of integral
    values: 7, 0.5, 0.0000001, -0, inf, NaN.
    """
    if math.isnan(value):
        return 'NaN'
    if math.isinf(value):
        return 'inf' if value > 0 else '-inf'
    text = format(Decimal(repr(float(value))), 'f')
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text


token_re = re.compile(r"""
    (?:
        (?P<word>   [A-Za-z]+)  # sequence of letters
      | (?P<number> [0-9.]+)    # digits and decimal points, checked later
      | (?P<symbol> [^\s])      # anything that didn't match the others
    )
    \s*
""", re.VERBOSE)

_float_re = re.compile(r"[0-9]+(?:\.[0-9]*)?|\.[0-9]+")


def tokenize(s):
    """Convert a string into a list of tokens."""
    pos = len(s) - len(s.lstrip())
    tokens = []

    while pos < len(s):
        # Match the regex against the string
        m = token_re.match(s, pos)
        d = m.groupdict()

        # Numbers
        if d["number"] is not None:
            text = d["number"]
            if not _float_re.fullmatch(text):
                raise LexError("not a number: %s" % text, pos)
            number = Number(text, pos)
            if math.isinf(number):
                raise LexError("number too large: %s" % text, pos)
            tokens.append(number)

        # Words are function names, nothing else
        elif d["word"] is not None:
            key = d["word"]
            if key not in functions:
                raise LexError("unknown function: %s" % key, pos)
            tokens.append(functions[key](pos))

        # Symbols are operators or parentheses
        else:
            key = d["symbol"]
            if key == "(":
                tokens.append(LeftParenthesis(pos))
            elif key == ")":
                tokens.append(RightParenthesis(pos))
            elif key in binary:
                tokens.append(binary[key](pos))
            else:
                raise LexError("unknown symbol: %s" % key, pos)

        # Update the position to read the next token
        pos = m.end()

    logger.debug("lexed %d tokens from %r", len(tokens), s)
    return tokens


def _fail(message, rule, token):
    raise CalcSyntaxError(message, rule, token.pos)


def validate(tokens):
    """Check that the tokens form a well-formed infix expression.

    Every rule only looks at the immediate neighbours of a token; on top
    of that the parentheses have to balance.  Raises CalcSyntaxError.
    """
    if not tokens:
        raise CalcSyntaxError("empty expression", 'empty')

    depth = 0
    last = len(tokens) - 1

    for i, token in enumerate(tokens):
        prev_token = tokens[i-1] if i > 0 else None
        next_token = tokens[i+1] if i < last else None

        if isinstance(token, LeftParenthesis):
            depth += 1
            if next_token is None:
                _fail("expression cannot end with '('", 'end', token)
            if not isinstance(next_token, (Number, Function, LeftParenthesis)):
                _fail("check what comes after '('", 'after-left-paren', token)

        elif isinstance(token, RightParenthesis):
            depth -= 1
            if prev_token is None:
                _fail("expression cannot start with ')'", 'start', token)
            if not isinstance(prev_token, (Number, RightParenthesis)):
                _fail("check what comes before ')'", 'before-right-paren', token)
            if next_token is not None and \
               not isinstance(next_token, (Operator, RightParenthesis)):
                _fail("check what comes after ')'", 'after-right-paren', token)

        elif isinstance(token, Number):
            if next_token is not None and \
               not isinstance(next_token, (Operator, RightParenthesis)):
                _fail("check what comes after numbers", 'after-number', next_token)

        elif isinstance(token, Function):
            if next_token is None:
                _fail("expression cannot end with a function", 'end', token)
            if not isinstance(next_token, LeftParenthesis):
                _fail("'%s' must be followed by '('" % token, 'after-function', token)

        elif isinstance(token, Operator):
            if prev_token is None or next_token is None:
                _fail("operator '%s' is missing an operand" % token, 'operand', token)
            if not isinstance(prev_token, (Number, RightParenthesis)):
                _fail("check what comes before '%s'" % token, 'before-operator', token)
            if not isinstance(next_token, (Number, Function, LeftParenthesis)):
                _fail("check what comes after '%s'" % token, 'after-operator', token)

        else:
            raise ValueError("found foreign object: %s" % repr(token))

    if depth != 0:
        raise UnbalancedParenthesesError(
            "%d unclosed '('" % depth if depth > 0 else "%d unmatched ')'" % -depth)


def to_rpn(tokens):
    """Convert a list of tokens to reverse Polish notation using the
    shunting yard algorithm.

    All operators are left associative, '^' included, so 2^3^2 is
    (2^3)^2.  See <http://en.wikipedia.org/wiki/Shunting_yard_algorithm>
    """
    # Output, in reverse Polish order
    out = []
    # Operator stack
    stack = []

    for token in tokens:

        # Number
        if isinstance(token, Number):
            # Write directly to output
            out.append(token)

        # Functions and left brackets wait for their right bracket
        elif isinstance(token, (Function, LeftParenthesis)):
            stack.append(token)

        # Right bracket
        elif isinstance(token, RightParenthesis):
            # Pop off operators, appending them to the output, until we hit a left bracket
            try:
                while not isinstance(stack[-1], LeftParenthesis):
                    out.append(stack.pop())
            except IndexError:
                raise CalcSyntaxError("too many right parentheses", 'unbalanced', token.pos)
            else:
                stack.pop() # the left parenthesis
            # A function call follows its argument
            if stack and isinstance(stack[-1], Function):
                out.append(stack.pop())

        # Binary operators
        elif isinstance(token, Operator):
            # Pop off any operators that bind at least as tight
            while (stack and isinstance(stack[-1], Operator)
                   and stack[-1].priority >= token.priority):
                out.append(stack.pop())
            # Then push the current operator onto the stack
            stack.append(token)

        else:
            raise ValueError("found foreign object: %s" % repr(token))

    # Finally, pop off anything still on the stack
    while stack:
        token = stack.pop()
        if isinstance(token, LeftParenthesis):
            raise CalcSyntaxError("too many left parentheses", 'unbalanced', token.pos)
        out.append(token)

    logger.debug("postfix: %s", ' '.join(str(t) for t in out))
    return out


def reduce_once(tokens):
    """Apply the first operator or function in a list of RPN tokens.

    Returns a new list in which that token and its operands have been
    replaced with the result; the rest is copied untouched.  A list with
    nothing left to apply is returned as it is.
    """
    stack = []

    for i, token in enumerate(tokens):
        if isinstance(token, (Operator, Function)):
            if len(stack) < token.nargs:
                raise EvalError("not enough values for %s" % token, token.pos)
            args = stack[-token.nargs:]
            for arg in args:
                if not isinstance(arg, Number):
                    raise EvalError("%s cannot be applied to %r" % (token, arg), token.pos)
            result = Number(token(*args))
            logger.debug("%s %s = %s", token, ' '.join(map(str, args)), result)
            stack[-token.nargs:] = [result]
            stack.extend(tokens[i+1:])
            return stack
        stack.append(token)

    return stack


def to_infix(tokens):
    """Render a list of RPN tokens as a fully parenthesized infix string."""
    stack = []

    for token in tokens:
        if isinstance(token, Number):
            stack.append(format_number(token))
        elif isinstance(token, Function):
            if not stack:
                raise RenderError("not enough values for %s" % token, token.pos)
            stack[-1] = "%s(%s)" % (token, stack[-1])
        elif isinstance(token, Operator):
            if len(stack) < 2:
                raise RenderError("not enough values for %s" % token, token.pos)
            right = stack.pop()
            left = stack.pop()
            stack.append("(%s %s %s)" % (left, token, right))
        else:
            raise RenderError("invalid postfix expression: found %s" % token,
                              getattr(token, 'pos', None))

    # There should be exactly one string left on the stack
    if len(stack) != 1:
        raise RenderError("invalid postfix expression: %d values left" % len(stack))
    return stack[0]


def parse(s):
    """Lex, check and convert an expression; returns the RPN tokens."""
    tokens = tokenize(s.strip())
    validate(tokens)
    return to_rpn(tokens)


def reductions(tokens):
    """Yield every state of a list of RPN tokens, from the list itself
    down to the single value it reduces to."""
    while len(tokens) > 1:
        yield tokens
        reduced = reduce_once(tokens)
        if len(reduced) >= len(tokens):
            raise EvalError("nothing left to reduce in %s" % ' '.join(map(str, tokens)))
        tokens = reduced
    yield tokens


def steps(tokens):
    """Yield the infix rendering of every reduction step.

    The first string is the unreduced expression and the last one is the
    final value.  The list passed in is not modified, so iterating again
    over steps() with the same list starts over.
    """
    for state in reductions(tokens):
        yield to_infix(state)


def trace(s):
    """Yield the lines printed for an expression."""
    s = s.strip()
    rpn = parse(s)
    yield "%s =" % s
    for step in steps(rpn):
        yield "= %s" % step


def evaluate(s):
    """Compute the value of an expression."""
    for state in reductions(parse(s)):
        pass
    return float(state[0])

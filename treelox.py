import argparse
import cmd
import logging
import math
import operator
import sys
import time
from dataclasses import dataclass
from enum import Enum, auto

from termcolor import colored

logger = logging.getLogger("treelox")


class TokenType(Enum):
    # single-character tokens
    LEFT_PAREN = auto()
    RIGHT_PAREN = auto()
    LEFT_BRACE = auto()
    RIGHT_BRACE = auto()
    COMMA = auto()
    DOT = auto()
    MINUS = auto()
    PLUS = auto()
    SEMICOLON = auto()
    SLASH = auto()
    STAR = auto()

    # one or two character tokens
    BANG = auto()
    BANG_EQUAL = auto()
    EQUAL = auto()
    EQUAL_EQUAL = auto()
    GREATER = auto()
    GREATER_EQUAL = auto()
    LESS = auto()
    LESS_EQUAL = auto()

    # literals
    IDENTIFIER = auto()
    STRING = auto()
    NUMBER = auto()

    # keywords
    AND = auto()
    CLASS = auto()
    ELSE = auto()
    FALSE = auto()
    FUN = auto()
    FOR = auto()
    IF = auto()
    NIL = auto()
    OR = auto()
    PRINT = auto()
    RETURN = auto()
    SUPER = auto()
    THIS = auto()
    TRUE = auto()
    VAR = auto()
    WHILE = auto()

    EOF = auto()


KEYWORDS = {
    "and": TokenType.AND,
    "class": TokenType.CLASS,
    "else": TokenType.ELSE,
    "false": TokenType.FALSE,
    "for": TokenType.FOR,
    "fun": TokenType.FUN,
    "if": TokenType.IF,
    "nil": TokenType.NIL,
    "or": TokenType.OR,
    "print": TokenType.PRINT,
    "return": TokenType.RETURN,
    "super": TokenType.SUPER,
    "this": TokenType.THIS,
    "true": TokenType.TRUE,
    "var": TokenType.VAR,
    "while": TokenType.WHILE,
}

SINGLE_CHAR_TOKENS = {
    "(": TokenType.LEFT_PAREN,
    ")": TokenType.RIGHT_PAREN,
    "{": TokenType.LEFT_BRACE,
    "}": TokenType.RIGHT_BRACE,
    ",": TokenType.COMMA,
    ".": TokenType.DOT,
    "-": TokenType.MINUS,
    "+": TokenType.PLUS,
    ";": TokenType.SEMICOLON,
    "*": TokenType.STAR,
}

# first char -> (kind alone, kind when followed by "=")
EQUAL_SUFFIX_TOKENS = {
    "!": (TokenType.BANG, TokenType.BANG_EQUAL),
    "=": (TokenType.EQUAL, TokenType.EQUAL_EQUAL),
    "<": (TokenType.LESS, TokenType.LESS_EQUAL),
    ">": (TokenType.GREATER, TokenType.GREATER_EQUAL),
}

STATEMENT_STARTS = {
    TokenType.CLASS, TokenType.FUN, TokenType.VAR, TokenType.FOR,
    TokenType.IF, TokenType.WHILE, TokenType.PRINT, TokenType.RETURN,
}

EOF_CHAR = "$EOF"


def is_digit(c): return len(c) == 1 and "0" <= c <= "9"
def is_name_first(c): return c.isalpha() or c == "_"
def is_name_rest(c): return is_digit(c) or is_name_first(c)


@dataclass(frozen=True)
class Token:
    kind: TokenType
    lexeme: str
    literal: object
    line: int

    def __str__(self):
        return f"{self.kind.name} {self.lexeme} {self.literal}"


# Error reporting

@dataclass(frozen=True)
class Diagnostic:
    line: int
    message: str
    where: str = ""
    runtime: bool = False

    def __str__(self):
        if self.runtime:
            return f"{self.message}\n[line {self.line}]"
        return f"[line {self.line}] Error{self.where}: {self.message}"


class LoxRuntimeError(Exception):
    def __init__(self, token, message):
        super().__init__(message)
        self.token = token
        self.message = message


class ErrorReporter:
    """Collects lexical, parse and runtime diagnostics and echoes them to stderr.

    The driver inspects had_error/had_runtime_error to choose an exit code; nothing
    here terminates the process.
    """
    ERROR = "red"

    def __init__(self, stream=None):
        self._stream = stream
        self.diagnostics = []
        self.had_error = False
        self.had_runtime_error = False
        self.static_errors = 0

    def error(self, line, message):
        self._report(Diagnostic(line, message))

    def token_error(self, token, message):
        if token.kind == TokenType.EOF:
            where = " at end"
        else:
            where = f" at '{token.lexeme}'"
        self._report(Diagnostic(token.line, message, where))

    def runtime_error(self, error):
        diagnostic = Diagnostic(error.token.line, error.message, runtime=True)
        self.diagnostics.append(diagnostic)
        self.had_runtime_error = True

        self._echo(colored(diagnostic.message, ErrorReporter.ERROR, attrs=["bold"])
                   + "\n" + colored(f"[line {diagnostic.line}]", attrs=["bold"]))

    def reset(self):
        self.had_error = False
        self.had_runtime_error = False

    def _report(self, diagnostic):
        self.diagnostics.append(diagnostic)
        self.had_error = True
        self.static_errors += 1

        self._echo(colored(f"[line {diagnostic.line}]", attrs=["bold"]) + " "
                   + colored(f"Error{diagnostic.where}:", ErrorReporter.ERROR, attrs=["bold"])
                   + " " + diagnostic.message)

    def _echo(self, text):
        print(text, file=self._stream if self._stream is not None else sys.stderr)


# Scanning

class Scanner:
    def __init__(self, src, reporter):
        self._src = src
        self._reporter = reporter
        self._tokens = []
        self._start = 0
        self._pos = 0
        self._line = 1

    def tokenize(self):
        while not self._at_end():
            self._start = self._pos
            self._scan_token()

        self._tokens.append(Token(TokenType.EOF, "", None, self._line))
        logger.debug("scanned %d tokens over %d lines", len(self._tokens), self._line)
        return self._tokens

    def _scan_token(self):
        match self._advance():
            case ch if ch in SINGLE_CHAR_TOKENS:
                self._add_token(SINGLE_CHAR_TOKENS[ch])
            case ch if ch in EQUAL_SUFFIX_TOKENS:
                alone, with_equal = EQUAL_SUFFIX_TOKENS[ch]
                self._add_token(with_equal if self._match("=") else alone)
            case "/":
                if self._match("/"):
                    while self._current_char() != "\n" and not self._at_end():
                        self._advance()
                else:
                    self._add_token(TokenType.SLASH)
            case " " | "\r" | "\t":
                pass
            case "\n":
                self._line += 1
            case '"':
                self._string()
            case ch if is_digit(ch):
                self._number()
            case ch if is_name_first(ch):
                self._name()
            case _:
                self._reporter.error(self._line, "Unexpected character.")

    def _string(self):
        while self._current_char() != '"' and not self._at_end():
            if self._current_char() == "\n":
                self._line += 1
            self._advance()

        if self._at_end():
            self._reporter.error(self._line, "Unterminated string.")
            return

        self._advance()  # closing quote
        self._add_token(TokenType.STRING, self._src[self._start + 1:self._pos - 1])

    def _number(self):
        while is_digit(self._current_char()):
            self._advance()

        if self._current_char() == "." and is_digit(self._next_char()):
            self._advance()
            while is_digit(self._current_char()):
                self._advance()

        self._add_token(TokenType.NUMBER, float(self._src[self._start:self._pos]))

    def _name(self):
        while is_name_rest(self._current_char()):
            self._advance()
        text = self._src[self._start:self._pos]
        self._add_token(KEYWORDS.get(text, TokenType.IDENTIFIER))

    def _add_token(self, kind, literal=None):
        text = self._src[self._start:self._pos]
        self._tokens.append(Token(kind, text, literal, self._line))

    def _match(self, expected):
        if self._current_char() != expected:
            return False
        self._pos += 1
        return True

    def _advance(self):
        self._pos += 1
        return self._src[self._pos - 1]

    def _at_end(self):
        return self._pos >= len(self._src)

    def _current_char(self):
        if self._pos < len(self._src):
            return self._src[self._pos]
        else:
            return EOF_CHAR

    def _next_char(self):
        if self._pos + 1 < len(self._src):
            return self._src[self._pos + 1]
        else:
            return EOF_CHAR


# Syntax tree

@dataclass(frozen=True)
class Literal:
    value: object


@dataclass(frozen=True)
class Grouping:
    expression: object


@dataclass(frozen=True)
class Unary:
    operator: Token
    right: object


@dataclass(frozen=True)
class Binary:
    operator: Token
    left: object
    right: object


@dataclass(frozen=True)
class Logical:
    operator: Token
    left: object
    right: object


@dataclass(frozen=True)
class Variable:
    name: Token


@dataclass(frozen=True)
class Assign:
    name: Token
    value: object


@dataclass(frozen=True)
class Call:
    callee: object
    paren: Token
    arguments: tuple


# Get/Set/This/Super are never produced by the parser and fail at runtime.
@dataclass(frozen=True)
class Get:
    obj: object
    name: Token


@dataclass(frozen=True)
class Set:
    obj: object
    name: Token
    value: object


@dataclass(frozen=True)
class This:
    keyword: Token


@dataclass(frozen=True)
class Super:
    keyword: Token
    method: Token


@dataclass(frozen=True)
class ExpressionStmt:
    expression: object


@dataclass(frozen=True)
class PrintStmt:
    expression: object


@dataclass(frozen=True)
class VarStmt:
    name: Token
    initializer: object = None


@dataclass(frozen=True)
class BlockStmt:
    statements: tuple


@dataclass(frozen=True)
class IfStmt:
    condition: object
    then_branch: object
    else_branch: object = None


@dataclass(frozen=True)
class WhileStmt:
    condition: object
    body: object


@dataclass(frozen=True)
class FunctionStmt:
    name: Token
    params: tuple
    body: tuple


@dataclass(frozen=True)
class ReturnStmt:
    keyword: Token
    value: object = None


class AstPrinter:
    """Renders syntax trees as parenthesized prefix forms, e.g. ``(+ 1 (* 2 3))``."""

    def print(self, expr):
        match expr:
            case Literal(value):
                return stringify(value)
            case Grouping(inner):
                return self._parenthesize("group", inner)
            case Unary(op, right):
                return self._parenthesize(op.lexeme, right)
            case Binary(op, left, right) | Logical(op, left, right):
                return self._parenthesize(op.lexeme, left, right)
            case Variable(name):
                return name.lexeme
            case Assign(name, value):
                return f"(assign {name.lexeme} {self.print(value)})"
            case Call(callee, _, arguments):
                return self._parenthesize("call", callee, *arguments)
            case Get(obj, name):
                return f"(get {self.print(obj)} {name.lexeme})"
            case Set(obj, name, value):
                return f"(set {self.print(obj)} {name.lexeme} {self.print(value)})"
            case This():
                return "(this)"
            case Super(_, method):
                return f"(super {method.lexeme})"
            case unexpected:
                assert False, f"Unexpected expression @ print(): {unexpected}"

    def print_stmt(self, stmt):
        match stmt:
            case ExpressionStmt(expression):
                return self._parenthesize(";", expression)
            case PrintStmt(expression):
                return self._parenthesize("print", expression)
            case VarStmt(name, None):
                return f"(var {name.lexeme})"
            case VarStmt(name, initializer):
                return f"(var {name.lexeme} = {self.print(initializer)})"
            case BlockStmt(statements):
                return "(block" + "".join(" " + self.print_stmt(s) for s in statements) + ")"
            case IfStmt(condition, then_branch, None):
                return f"(if {self.print(condition)} {self.print_stmt(then_branch)})"
            case IfStmt(condition, then_branch, else_branch):
                return (f"(if {self.print(condition)} {self.print_stmt(then_branch)}"
                        f" {self.print_stmt(else_branch)})")
            case WhileStmt(condition, body):
                return f"(while {self.print(condition)} {self.print_stmt(body)})"
            case FunctionStmt(name, params, body):
                params_text = " ".join(param.lexeme for param in params)
                return (f"(fun {name.lexeme}({params_text})"
                        + "".join(" " + self.print_stmt(s) for s in body) + ")")
            case ReturnStmt(_, None):
                return "(return)"
            case ReturnStmt(_, value):
                return self._parenthesize("return", value)
            case unexpected:
                assert False, f"Unexpected statement @ print_stmt(): {unexpected}"

    def _parenthesize(self, name, *exprs):
        return "(" + name + "".join(" " + self.print(expr) for expr in exprs) + ")"


# Parsing

class ParseError(Exception):
    pass


class Parser:
    def __init__(self, tokens, reporter):
        self._tokens = tokens
        self._reporter = reporter
        self._pos = 0
        self._function_depth = 0

    def parse(self):
        statements = []
        while not self._at_end():
            stmt = self._declaration()
            if stmt is not None:
                statements.append(stmt)
        logger.debug("parsed %d top-level statements", len(statements))
        return statements

    def parse_expression(self):
        """Parses a lone expression, returning None if it is malformed."""
        try:
            expr = self._expression()
            if not self._at_end():
                raise self._error(self._peek(), "Expect end of expression.")
            return expr
        except ParseError:
            return None

    def _declaration(self):
        try:
            if self._match(TokenType.FUN):
                return self._function("function")
            if self._match(TokenType.VAR):
                return self._var_declaration()
            return self._statement()
        except ParseError:
            self._synchronize()
            return None

    def _function(self, kind):
        name = self._consume(TokenType.IDENTIFIER, f"Expect {kind} name.")
        self._consume(TokenType.LEFT_PAREN, f"Expect '(' after {kind} name.")
        params = []
        if not self._check(TokenType.RIGHT_PAREN):
            params.append(self._consume(TokenType.IDENTIFIER, "Expect parameter name."))
            while self._match(TokenType.COMMA):
                params.append(self._consume(TokenType.IDENTIFIER, "Expect parameter name."))
        self._consume(TokenType.RIGHT_PAREN, "Expect ')' after parameters.")

        self._consume(TokenType.LEFT_BRACE, f"Expect '{{' before {kind} body.")
        self._function_depth += 1
        try:
            body = self._block()
        finally:
            self._function_depth -= 1
        return FunctionStmt(name, tuple(params), body)

    def _var_declaration(self):
        name = self._consume(TokenType.IDENTIFIER, "Expect variable name.")
        initializer = None
        if self._match(TokenType.EQUAL):
            initializer = self._expression()
        self._consume(TokenType.SEMICOLON, "Expect ';' after variable declaration.")
        return VarStmt(name, initializer)

    def _statement(self):
        if self._match(TokenType.FOR):
            return self._for_statement()
        if self._match(TokenType.IF):
            return self._if_statement()
        if self._match(TokenType.WHILE):
            return self._while_statement()
        if self._match(TokenType.PRINT):
            return self._print_statement()
        if self._match(TokenType.RETURN):
            return self._return_statement()
        if self._match(TokenType.LEFT_BRACE):
            return BlockStmt(self._block())
        return self._expression_statement()

    def _for_statement(self):
        self._consume(TokenType.LEFT_PAREN, "Expect '(' after 'for'.")

        if self._match(TokenType.SEMICOLON):
            initializer = None
        elif self._match(TokenType.VAR):
            initializer = self._var_declaration()
        else:
            initializer = self._expression_statement()

        condition = None
        if not self._check(TokenType.SEMICOLON):
            condition = self._expression()
        self._consume(TokenType.SEMICOLON, "Expect ';' after loop condition.")

        increment = None
        if not self._check(TokenType.RIGHT_PAREN):
            increment = self._expression()
        self._consume(TokenType.RIGHT_PAREN, "Expect ')' after for clauses.")

        body = self._statement()

        # for (init; cond; incr) body  =>  { init; while (cond) { body; incr; } }
        if increment is not None:
            body = BlockStmt((body, ExpressionStmt(increment)))
        if condition is None:
            condition = Literal(True)
        body = WhileStmt(condition, body)
        if initializer is not None:
            body = BlockStmt((initializer, body))
        return body

    def _if_statement(self):
        self._consume(TokenType.LEFT_PAREN, "Expect '(' after 'if'.")
        condition = self._expression()
        self._consume(TokenType.RIGHT_PAREN, "Expect ')' after if condition.")

        then_branch = self._statement()
        else_branch = None
        if self._match(TokenType.ELSE):
            else_branch = self._statement()
        return IfStmt(condition, then_branch, else_branch)

    def _while_statement(self):
        self._consume(TokenType.LEFT_PAREN, "Expect '(' after 'while'.")
        condition = self._expression()
        self._consume(TokenType.RIGHT_PAREN, "Expect ')' after condition.")
        return WhileStmt(condition, self._statement())

    def _print_statement(self):
        value = self._expression()
        self._consume(TokenType.SEMICOLON, "Expect ';' after value.")
        return PrintStmt(value)

    def _return_statement(self):
        keyword = self._previous()
        if self._function_depth == 0:
            raise self._error(keyword, "Can't return from top-level code.")
        value = None
        if not self._check(TokenType.SEMICOLON):
            value = self._expression()
        self._consume(TokenType.SEMICOLON, "Expect ';' after return value.")
        return ReturnStmt(keyword, value)

    def _expression_statement(self):
        expr = self._expression()
        self._consume(TokenType.SEMICOLON, "Expect ';' after expression.")
        return ExpressionStmt(expr)

    def _block(self):
        statements = []
        while not self._check(TokenType.RIGHT_BRACE) and not self._at_end():
            stmt = self._declaration()
            if stmt is not None:
                statements.append(stmt)
        self._consume(TokenType.RIGHT_BRACE, "Expect '}' after block.")
        return tuple(statements)

    def _expression(self):
        return self._assignment()

    def _assignment(self):
        expr = self._or()

        if self._match(TokenType.EQUAL):
            equals = self._previous()
            value = self._assignment()
            if isinstance(expr, Variable):
                return Assign(expr.name, value)
            raise self._error(equals, "Invalid assignment target.")

        return expr

    def _or(self):
        expr = self._and()
        while self._match(TokenType.OR):
            op = self._previous()
            expr = Logical(op, expr, self._and())
        return expr

    def _and(self):
        expr = self._equality()
        while self._match(TokenType.AND):
            op = self._previous()
            expr = Logical(op, expr, self._equality())
        return expr

    def _equality(self):
        return self._binary(self._comparison, TokenType.BANG_EQUAL, TokenType.EQUAL_EQUAL)

    def _comparison(self):
        return self._binary(self._term, TokenType.GREATER, TokenType.GREATER_EQUAL,
                            TokenType.LESS, TokenType.LESS_EQUAL)

    def _term(self):
        return self._binary(self._factor, TokenType.MINUS, TokenType.PLUS)

    def _factor(self):
        return self._binary(self._unary, TokenType.SLASH, TokenType.STAR)

    def _binary(self, operand, *kinds):
        left = operand()
        while self._match(*kinds):
            op = self._previous()
            right = operand()
            left = Binary(op, left, right)
        return left

    def _unary(self):
        if self._match(TokenType.BANG, TokenType.MINUS):
            op = self._previous()
            return Unary(op, self._unary())
        return self._call()

    def _call(self):
        expr = self._primary()
        while self._match(TokenType.LEFT_PAREN):
            expr = self._comma_separated_exprs(expr)
        return expr

    def _comma_separated_exprs(self, callee):
        arguments = []
        if not self._check(TokenType.RIGHT_PAREN):
            arguments.append(self._expression())
            while self._match(TokenType.COMMA):
                arguments.append(self._expression())
        paren = self._consume(TokenType.RIGHT_PAREN, "Expect ')' after arguments.")
        return Call(callee, paren, tuple(arguments))

    def _primary(self):
        match self._peek().kind:
            case TokenType.FALSE:
                self._advance()
                return Literal(False)
            case TokenType.TRUE:
                self._advance()
                return Literal(True)
            case TokenType.NIL:
                self._advance()
                return Literal(None)
            case TokenType.NUMBER | TokenType.STRING:
                return Literal(self._advance().literal)
            case TokenType.IDENTIFIER:
                return Variable(self._advance())
            case TokenType.LEFT_PAREN:
                self._advance()
                expr = self._expression()
                self._consume(TokenType.RIGHT_PAREN, "Expect ')' after expression.")
                return Grouping(expr)
            case _:
                raise self._error(self._peek(), "Expect expression.")

    def _synchronize(self):
        self._advance()
        while not self._at_end():
            if self._previous().kind == TokenType.SEMICOLON:
                return
            if self._peek().kind in STATEMENT_STARTS:
                return
            self._advance()

    def _error(self, token, message):
        self._reporter.token_error(token, message)
        return ParseError(message)

    def _match(self, *kinds):
        if any(self._check(kind) for kind in kinds):
            self._advance()
            return True
        return False

    def _consume(self, kind, message):
        if self._check(kind):
            return self._advance()
        raise self._error(self._peek(), message)

    def _check(self, kind):
        return not self._at_end() and self._peek().kind == kind

    def _at_end(self):
        return self._peek().kind == TokenType.EOF

    def _peek(self):
        return self._tokens[self._pos]

    def _previous(self):
        return self._tokens[self._pos - 1]

    def _advance(self):
        if not self._at_end():
            self._pos += 1
        return self._previous()


# Runtime

class Environment:
    def __init__(self, parent=None):
        self._parent = parent
        self._vars = {}

    def __repr__(self):
        content = ", ".join(self._vars)
        return f"[{content}]" + (f" < {self._parent}" if self._parent else "")

    def define(self, name, val):
        self._vars[name] = val

    def get(self, name):
        if name.lexeme in self._vars:
            return self._vars[name.lexeme]
        elif self._parent is not None:
            return self._parent.get(name)
        else:
            raise LoxRuntimeError(name, f"Undefined variable '{name.lexeme}'.")

    def assign(self, name, val):
        if name.lexeme in self._vars:
            self._vars[name.lexeme] = val
        elif self._parent is not None:
            self._parent.assign(name, val)
        else:
            raise LoxRuntimeError(name, f"Undefined variable '{name.lexeme}'.")


@dataclass(frozen=True)
class Return:
    """Signals a `return` unwinding out of statement execution up to the call boundary."""
    value: object


@dataclass(frozen=True, eq=False, repr=False)
class LoxFunction:
    declaration: FunctionStmt
    closure: Environment

    def __str__(self):
        return f"<fn {self.declaration.name.lexeme}>"

    __repr__ = __str__

    def arity(self):
        return len(self.declaration.params)

    def call(self, interpreter, arguments):
        env = Environment(self.closure)
        for param, arg in zip(self.declaration.params, arguments):
            env.define(param.lexeme, arg)

        match interpreter.execute_block(self.declaration.body, env):
            case Return(value):
                return value
        return None


class NativeFunction:
    def __init__(self, arity, fn):
        self._arity = arity
        self._fn = fn

    def __str__(self):
        return "<native fn>"

    __repr__ = __str__

    def arity(self):
        return self._arity

    def call(self, interpreter, arguments):
        return self._fn(*arguments)


def is_truthy(val):
    match val:
        case None: return False
        case bool(): return val
        case _: return True


def is_number(val): return isinstance(val, float)


def is_equal(a, b):
    if a is None:
        return b is None
    # keeps true == 1 false, since bool is an int subclass in Python
    if type(a) is not type(b):
        return False
    return a == b


def divide(left, right):
    if right == 0.0:
        if left == 0.0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)
    return left / right


def stringify(val):
    match val:
        case None:
            return "nil"
        case bool():
            return "true" if val else "false"
        case float() if math.isnan(val):
            return "NaN"
        case float() if math.isinf(val):
            return "Infinity" if val > 0 else "-Infinity"
        case float():
            text = repr(val)
            return text[:-2] if text.endswith(".0") else text
        case _:
            return str(val)


NUMERIC_OPERATORS = {
    TokenType.MINUS: operator.sub,
    TokenType.SLASH: divide,
    TokenType.STAR: operator.mul,
    TokenType.GREATER: operator.gt,
    TokenType.GREATER_EQUAL: operator.ge,
    TokenType.LESS: operator.lt,
    TokenType.LESS_EQUAL: operator.le,
}


class Interpreter:
    def __init__(self, reporter, out=None):
        self._reporter = reporter
        self._out = out
        self.globals = Environment()
        self._env = self.globals
        self.init_env()

    def init_env(self):
        self.globals.define("clock", NativeFunction(0, time.time))
        return self

    def interpret(self, statements):
        try:
            for stmt in statements:
                logger.debug("executing %s", type(stmt).__name__)
                self.execute(stmt)
        except LoxRuntimeError as error:
            self._reporter.runtime_error(error)

    def execute(self, stmt):
        """Executes one statement; returns a Return when a `return` is unwinding, else None."""
        match stmt:
            case ExpressionStmt(expression):
                self.evaluate(expression)
            case PrintStmt(expression):
                print(stringify(self.evaluate(expression)), file=self._out)
            case VarStmt(name, initializer):
                val = None if initializer is None else self.evaluate(initializer)
                self._env.define(name.lexeme, val)
            case BlockStmt(statements):
                return self.execute_block(statements, Environment(self._env))
            case IfStmt(condition, then_branch, else_branch):
                if is_truthy(self.evaluate(condition)):
                    return self.execute(then_branch)
                elif else_branch is not None:
                    return self.execute(else_branch)
            case WhileStmt(condition, body):
                while is_truthy(self.evaluate(condition)):
                    if (result := self.execute(body)) is not None:
                        return result
            case FunctionStmt(name):
                self._env.define(name.lexeme, LoxFunction(stmt, self._env))
            case ReturnStmt(_, value):
                return Return(None if value is None else self.evaluate(value))
            case unexpected:
                assert False, f"Unexpected statement @ execute(): {unexpected}"
        return None

    def execute_block(self, statements, env):
        previous = self._env
        self._env = env
        try:
            for stmt in statements:
                if (result := self.execute(stmt)) is not None:
                    return result
            return None
        finally:
            self._env = previous

    def evaluate(self, expr):
        match expr:
            case Literal(value):
                return value
            case Grouping(inner):
                return self.evaluate(inner)
            case Unary(op, right):
                return self._evaluate_unary(op, self.evaluate(right))
            case Binary(op, left, right):
                left_val = self.evaluate(left)
                right_val = self.evaluate(right)
                return self._evaluate_binary(op, left_val, right_val)
            case Logical(op, left, right):
                return self._evaluate_logical(op, left, right)
            case Variable(name):
                return self._env.get(name)
            case Assign(name, value):
                val = self.evaluate(value)
                self._env.assign(name, val)
                return val
            case Call(callee, paren, arguments):
                return self._evaluate_call(callee, paren, arguments)
            case Get(_, name):
                raise LoxRuntimeError(name, "Property access not yet implemented.")
            case Set(_, name, _):
                raise LoxRuntimeError(name, "Property assignment not yet implemented.")
            case This(keyword):
                raise LoxRuntimeError(keyword, "This not yet implemented.")
            case Super(keyword, _):
                raise LoxRuntimeError(keyword, "Super not yet implemented.")
            case unexpected:
                assert False, f"Unexpected expression @ evaluate(): {unexpected}"

    def _evaluate_unary(self, op, right):
        match op.kind:
            case TokenType.MINUS:
                if not is_number(right):
                    raise LoxRuntimeError(op, "Operand must be a number.")
                return -right
            case TokenType.BANG:
                return not is_truthy(right)
            case unexpected:
                assert False, f"Unexpected unary operator @ _evaluate_unary(): {unexpected}"

    def _evaluate_binary(self, op, left, right):
        match op.kind:
            case TokenType.PLUS:
                if is_number(left) and is_number(right):
                    return left + right
                if isinstance(left, str) and isinstance(right, str):
                    return left + right
                raise LoxRuntimeError(op, "Operands must be two numbers or two strings.")
            case TokenType.EQUAL_EQUAL:
                return is_equal(left, right)
            case TokenType.BANG_EQUAL:
                return not is_equal(left, right)
            case kind if kind in NUMERIC_OPERATORS:
                if not (is_number(left) and is_number(right)):
                    raise LoxRuntimeError(op, "Operands must be numbers.")
                return NUMERIC_OPERATORS[kind](left, right)
            case unexpected:
                assert False, f"Unexpected binary operator @ _evaluate_binary(): {unexpected}"

    def _evaluate_logical(self, op, left, right):
        left_val = self.evaluate(left)
        if op.kind == TokenType.OR:
            if is_truthy(left_val):
                return left_val
        elif not is_truthy(left_val):
            return left_val
        return self.evaluate(right)

    def _evaluate_call(self, callee_expr, paren, args_expr):
        callee = self.evaluate(callee_expr)
        args_val = [self.evaluate(arg) for arg in args_expr]

        if not isinstance(callee, (LoxFunction, NativeFunction)):
            raise LoxRuntimeError(paren, "Can only call functions.")
        if len(args_val) != callee.arity():
            raise LoxRuntimeError(
                paren, f"Expected {callee.arity()} arguments but got {len(args_val)}.")

        try:
            return callee.call(self, args_val)
        except RecursionError:
            raise LoxRuntimeError(paren, "Stack overflow.") from None


# Driver

class Lox:
    """One interpreter session: globals persist across successive run() calls."""

    def __init__(self, out=None, err=None):
        self.reporter = ErrorReporter(err)
        self.interpreter = Interpreter(self.reporter, out)
        self._out = out

    def scan(self, src):
        return Scanner(src, self.reporter).tokenize()

    def parse(self, tokens):
        return Parser(tokens, self.reporter).parse()

    def ast(self, src):
        return self.parse(self.scan(src))

    def checked_ast(self, src):
        """Like ast(), but None if this source produced any lexical or parse error."""
        before = self.reporter.static_errors
        statements = self.ast(src)
        if self.reporter.static_errors != before:
            return None
        return statements

    def run(self, src):
        statements = self.checked_ast(src)
        if statements is None:
            return
        self.interpreter.interpret(statements)

    def dump(self, src):
        statements = self.checked_ast(src)
        if statements is None:
            return
        printer = AstPrinter()
        for stmt in statements:
            print(printer.print_stmt(stmt), file=self._out)

    def exit_code(self):
        if self.reporter.had_error:
            return 65
        if self.reporter.had_runtime_error:
            return 70
        return 0


class Shell(cmd.Cmd):
    """Interactive prompt; each line is scanned, parsed and run in the same session."""
    intro = "treelox :: tree-walking Lox interpreter\nType 'exit' or Ctrl-D to quit."
    prompt = "> "

    def __init__(self, lox, ast_only=False, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.lox = lox
        self.ast_only = ast_only

    def onecmd(self, line):
        # only a bare "exit" (or end of input) is a shell command; `help = 1;` is Lox
        match line.strip():
            case "EOF":
                return self.do_EOF("")
            case "exit":
                return self.do_exit("")
            case "":
                return self.emptyline()
            case _:
                return self.default(line)

    def default(self, line):
        if self.ast_only:
            self.lox.dump(line)
        else:
            self.lox.run(line)
        self.lox.reporter.reset()

    def emptyline(self):
        """Do not repeat previous command on empty line."""
        return False

    def do_EOF(self, arg):
        print()
        return True

    def do_exit(self, arg):
        return True


def run_file(lox, path, ast_only=False):
    try:
        with open(path, encoding="utf-8") as file:
            src = file.read()
    except OSError as error:
        print(colored("error: ", ErrorReporter.ERROR, attrs=["bold"])
              + f"'{path}' could not be opened: {error.strerror}", file=sys.stderr)
        return 66

    if ast_only:
        lox.dump(src)
    else:
        lox.run(src)
    return lox.exit_code()


def main(argv=None):
    parser = argparse.ArgumentParser(prog="treelox", description="Tree-walking Lox interpreter.")
    parser.add_argument("script", nargs="?", help="file to run (if omitted, starts the interactive prompt)")
    parser.add_argument("--ast", action="store_true", help="print the parsed syntax tree instead of running")
    parser.add_argument("-v", "--verbose", action="store_true", help="log scanner/parser/interpreter activity")
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    lox = Lox()
    if args.script is not None:
        return run_file(lox, args.script, ast_only=args.ast)

    Shell(lox, ast_only=args.ast).cmdloop()
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Line-oriented parser for the story markup.

A story file is a sequence of named blocks. Every line whose first non-blank
character is ``@`` is a directive; every other line inside a block is
narrative text copied verbatim. See ``docs/markup.md`` for the full syntax.

The parser is purely structural. It never evaluates predicates and never
checks that destinations exist; it only rejects markup it cannot turn into
nodes.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, List, Literal, Tuple

from intfic.data.errors import ParseError
from intfic.domain.defs import (
    COLOR_TAGS,
    And,
    Block,
    BlockRef,
    ConditionalBlock,
    CounterCompare,
    Destination,
    FileRef,
    FlagTest,
    Jump,
    Node,
    Not,
    Option,
    OptionMenu,
    Or,
    Predicate,
    StateDirective,
    Story,
    TextRun,
    VOCABULARY_NAMES,
)

logger = logging.getLogger(__name__)

DIRECTIVE_PREFIX = "@"
ESCAPE_PREFIX = "\\"

STATE_KEYWORDS: FrozenSet[str] = frozenset({"set", "clear", "incr", "decr"})
KEYWORDS: FrozenSet[str] = frozenset(
    {"entry", "block", "end", "if", "else", "endif", "set", "clear", "incr", "decr", "option", "jump"}
)

_NAME = r"[A-Za-z0-9_][A-Za-z0-9_.\-]*"
_NAME_RE = re.compile(rf"^{_NAME}$")
_FILE_ID_RE = re.compile(r"^[A-Za-z0-9_.][A-Za-z0-9_./\-]*$")
_TARGET_RE = re.compile(rf"^(flag|counter):({_NAME})$")
_INT_RE = re.compile(r"^[+-]?\d+$")
_DIRECTIVE_RE = re.compile(r"^@(\S*)(\s*)(.*)$")
_COLOR_MARKER_RE = re.compile(r"\{\{|\{(/?)([A-Za-z_][A-Za-z0-9_]*)\}")
_TOKEN_RE = re.compile(
    rf"""
    (?P<lparen>\()
    |(?P<rparen>\))
    |(?P<cmp><=|>=|==|!=|<|>)
    |(?P<and>&&)
    |(?P<or>\|\|)
    |(?P<bang>!)
    |(?P<ref>(?:flag|counter):{_NAME})
    |(?P<int>[+-]?\d+)
    |(?P<word>[A-Za-z_][A-Za-z0-9_]*)
    """,
    re.VERBOSE,
)


@dataclass(frozen=True, slots=True)
class Grammar:
    """Recognised color tags and directive keywords."""

    color_tags: FrozenSet[str] = frozenset(COLOR_TAGS)
    keywords: FrozenSet[str] = KEYWORDS
    comment_prefix: str = "#"


DEFAULT_GRAMMAR = Grammar()


@dataclass(slots=True)
class _Frame:
    """An open block or conditional while its nodes are being collected."""

    kind: Literal["block", "if"]
    line: int
    name: str = ""
    predicate: Predicate | None = None
    then_nodes: List[Node] = field(default_factory=list)
    else_nodes: List[Node] | None = None
    pending_options: List[Option] = field(default_factory=list)

    @property
    def nodes(self) -> List[Node]:
        return self.else_nodes if self.else_nodes is not None else self.then_nodes


@dataclass(slots=True)
class _ParseContext:
    file_id: str
    stack: List[_Frame] = field(default_factory=list)
    blocks: Dict[str, Block] = field(default_factory=dict)
    entry: str | None = None
    entry_line: int = 0


class MarkupParser:
    """Turns story file text into a :class:`Story`."""

    def __init__(self, grammar: Grammar | None = None) -> None:
        self._grammar = grammar or DEFAULT_GRAMMAR

    @property
    def grammar(self) -> Grammar:
        return self._grammar

    def parse(self, text: str, file_id: str = "<string>") -> Story:
        """Parse a whole story file, raising ParseError on malformed markup."""
        ctx = _ParseContext(file_id=file_id)
        for line_no, raw in enumerate(_split_lines(text), start=1):
            self._parse_line(ctx, raw, line_no)

        if ctx.stack:
            frame = ctx.stack[-1]
            if frame.kind == "if":
                raise _error(ctx, "Unterminated conditional: '@if' has no matching '@endif'", frame.line, 1, "@if")
            raise _error(ctx, f"Unterminated block '{frame.name}': missing '@end'", frame.line, 1, "@block")

        entry = ctx.entry
        if entry is not None and entry not in ctx.blocks:
            raise _error(ctx, f"Entry block '{entry}' is not defined", ctx.entry_line, 1, "@entry")
        if entry is None and ctx.blocks:
            entry = next(iter(ctx.blocks))

        logger.debug("Parsed %d block(s) from %s", len(ctx.blocks), file_id)
        return Story(file_id=file_id, blocks=ctx.blocks, entry_block=entry)

    # Lines ------------------------------------------------------------------

    def _parse_line(self, ctx: _ParseContext, raw: str, line_no: int) -> None:
        stripped = raw.strip()
        indent = len(raw) - len(raw.lstrip())
        is_directive = stripped.startswith(DIRECTIVE_PREFIX)

        if not ctx.stack:
            if not stripped or stripped.startswith(self._grammar.comment_prefix):
                return
            if not is_directive:
                raise _error(ctx, "Narrative text outside of a block", line_no, indent + 1, stripped)

        if not is_directive:
            frame = ctx.stack[-1]
            self._flush_menu(frame)
            offset = 0
            if stripped.startswith(ESCAPE_PREFIX + DIRECTIVE_PREFIX):
                # \@ keeps a narrative line that starts with '@'
                raw = raw[:indent] + raw[indent + 1 :]
                offset = 1
            frame.nodes.extend(self._parse_text(ctx, raw, line_no, offset))
            return

        match = _DIRECTIVE_RE.match(stripped)
        assert match is not None
        keyword, gap, args = match.group(1), match.group(2), match.group(3).rstrip()
        column = indent + 1
        args_column = indent + 2 + len(keyword) + len(gap)
        if keyword not in self._grammar.keywords:
            raise _error(ctx, f"Unknown directive keyword '@{keyword}'", line_no, column, f"@{keyword}")

        if not ctx.stack:
            if keyword == "block":
                self._open_block(ctx, args, line_no, args_column)
            elif keyword == "entry":
                self._set_entry(ctx, args, line_no, args_column)
            else:
                raise _error(ctx, f"'@{keyword}' is only allowed inside a block", line_no, column, f"@{keyword}")
            return

        frame = ctx.stack[-1]
        if keyword == "option":
            frame.pending_options.append(self._parse_option(ctx, args, line_no, args_column))
            return
        self._flush_menu(frame)

        if keyword == "block":
            block_name = ctx.stack[0].name
            raise _error(
                ctx,
                f"Unterminated block '{block_name}': '@block' found before '@end'",
                line_no,
                column,
                "@block",
            )
        if keyword == "entry":
            raise _error(ctx, "'@entry' is only allowed outside blocks", line_no, column, "@entry")
        if keyword == "end":
            self._expect_no_args(ctx, keyword, args, line_no, args_column)
            self._close_block(ctx, line_no, column)
        elif keyword == "if":
            predicate = self._parse_predicate(ctx, args, line_no, args_column)
            ctx.stack.append(_Frame(kind="if", line=line_no, predicate=predicate))
        elif keyword == "else":
            self._expect_no_args(ctx, keyword, args, line_no, args_column)
            if frame.kind != "if":
                raise _error(ctx, "'@else' without a matching '@if'", line_no, column, "@else")
            if frame.else_nodes is not None:
                raise _error(ctx, "Duplicate '@else' in one conditional", line_no, column, "@else")
            frame.else_nodes = []
        elif keyword == "endif":
            self._expect_no_args(ctx, keyword, args, line_no, args_column)
            if frame.kind != "if":
                raise _error(ctx, "'@endif' without a matching '@if'", line_no, column, "@endif")
            ctx.stack.pop()
            assert frame.predicate is not None
            ctx.stack[-1].nodes.append(
                ConditionalBlock(
                    predicate=frame.predicate,
                    then_nodes=tuple(frame.then_nodes),
                    else_nodes=tuple(frame.else_nodes or ()),
                )
            )
        elif keyword == "jump":
            destination = self._parse_destination(ctx, args, line_no, args_column)
            frame.nodes.append(Jump(destination=destination))
        elif keyword not in STATE_KEYWORDS:
            raise _error(ctx, f"Unsupported directive '@{keyword}'", line_no, column, f"@{keyword}")
        else:
            frame.nodes.append(self._parse_directive(ctx, keyword, args, line_no, args_column))

    def _open_block(self, ctx: _ParseContext, args: str, line_no: int, column: int) -> None:
        name = args.strip()
        if not _NAME_RE.match(name):
            raise _error(ctx, f"Invalid block name '{name}'", line_no, column, "@block")
        if name in ctx.blocks:
            raise _error(ctx, f"Duplicate block name '{name}'", line_no, column, "@block")
        ctx.stack.append(_Frame(kind="block", line=line_no, name=name))

    def _close_block(self, ctx: _ParseContext, line_no: int, column: int) -> None:
        frame = ctx.stack[-1]
        if frame.kind == "if":
            raise _error(
                ctx,
                f"Unterminated conditional opened on line {frame.line}: '@end' found before '@endif'",
                line_no,
                column,
                "@end",
            )
        ctx.stack.pop()
        ctx.blocks[frame.name] = Block(name=frame.name, nodes=tuple(frame.then_nodes), line=frame.line)

    def _set_entry(self, ctx: _ParseContext, args: str, line_no: int, column: int) -> None:
        name = args.strip()
        if not _NAME_RE.match(name):
            raise _error(ctx, f"Invalid entry block name '{name}'", line_no, column, "@entry")
        if ctx.entry is not None:
            raise _error(ctx, "Duplicate '@entry' declaration", line_no, column, "@entry")
        ctx.entry = name
        ctx.entry_line = line_no

    @staticmethod
    def _flush_menu(frame: _Frame) -> None:
        if frame.pending_options:
            frame.nodes.append(OptionMenu(options=tuple(frame.pending_options)))
            frame.pending_options.clear()

    def _expect_no_args(self, ctx: _ParseContext, keyword: str, args: str, line_no: int, column: int) -> None:
        if args:
            raise _error(ctx, f"'@{keyword}' takes no arguments", line_no, column, args)

    # Text -------------------------------------------------------------------

    def _parse_text(self, ctx: _ParseContext, raw: str, line_no: int, offset: int = 0) -> List[TextRun]:
        """Split one narrative line into runs; ``{{`` stands for a literal brace."""
        runs: List[TextRun] = []
        pending: List[str] = []
        position = 0
        open_tag: str | None = None
        open_column = 0
        for marker in _COLOR_MARKER_RE.finditer(raw):
            pending.append(raw[position : marker.start()])
            position = marker.end()
            if marker.group(0) == "{{":
                pending.append("{")
                continue
            closing = marker.group(1) == "/"
            tag = marker.group(2)
            column = marker.start() + 1 + offset
            if tag not in self._grammar.color_tags:
                raise _error(ctx, f"Unknown color tag '{tag}'", line_no, column, marker.group(0))
            segment = "".join(pending)
            pending = []
            if closing:
                if open_tag is None:
                    raise _error(
                        ctx, f"Closing color tag '{{/{tag}}}' without an opening tag", line_no, column, marker.group(0)
                    )
                if tag != open_tag:
                    raise _error(
                        ctx,
                        f"Mismatched color tag: expected '{{/{open_tag}}}', found '{{/{tag}}}'",
                        line_no,
                        column,
                        marker.group(0),
                    )
                runs.append(TextRun(content=segment, color=open_tag, ends_line=False))
                open_tag = None
            else:
                if open_tag is not None:
                    raise _error(
                        ctx, "Nested color tags are not supported", line_no, column, marker.group(0)
                    )
                if segment:
                    runs.append(TextRun(content=segment, ends_line=False))
                open_tag = tag
                open_column = column

        if open_tag is not None:
            raise _error(
                ctx, f"Unterminated color tag '{{{open_tag}}}'", line_no, open_column, f"{{{open_tag}}}"
            )
        tail = "".join(pending) + raw[position:]
        if tail or not runs:
            runs.append(TextRun(content=tail))
        else:
            runs[-1] = replace(runs[-1], ends_line=True)
        return runs

    # Directives -------------------------------------------------------------

    def _parse_directive(
        self, ctx: _ParseContext, keyword: str, args: str, line_no: int, column: int
    ) -> StateDirective:
        parts = args.split()
        if not parts:
            raise _error(ctx, f"'@{keyword}' needs a target", line_no, column, f"@{keyword}")
        target_match = _TARGET_RE.match(parts[0])
        if target_match is None:
            raise _error(
                ctx,
                f"Invalid target '{parts[0]}': expected 'flag:NAME' or 'counter:NAME'",
                line_no,
                column,
                parts[0],
            )
        namespace, name = target_match.group(1), target_match.group(2)
        operands = parts[1:]
        operand_column = column + args.find(operands[0], len(parts[0])) if operands else column
        if len(operands) > 1:
            raise _error(ctx, f"Too many operands for '@{keyword}'", line_no, operand_column, args)

        if namespace == "flag":
            if keyword == "clear":
                if operands:
                    raise _error(ctx, "'@clear' takes no value", line_no, operand_column, operands[0])
                return StateDirective(op="clear_flag", target=name)
            if keyword != "set":
                raise _error(ctx, f"'@{keyword}' expects a counter target", line_no, column, parts[0])
            if not operands or operands[0] == "true":
                return StateDirective(op="set_flag", target=name)
            if operands[0] == "false":
                return StateDirective(op="clear_flag", target=name)
            raise _error(ctx, f"Invalid flag value '{operands[0]}'", line_no, operand_column, operands[0])

        if keyword == "clear":
            raise _error(ctx, "'@clear' expects a flag target", line_no, column, parts[0])
        amount = None
        if operands:
            if not _INT_RE.match(operands[0]):
                raise _error(ctx, f"Invalid amount '{operands[0]}'", line_no, operand_column, operands[0])
            amount = int(operands[0])
        if keyword == "set":
            if amount is None:
                raise _error(ctx, "'@set counter:' needs a value", line_no, column, parts[0])
            return StateDirective(op="set_counter", target=name, amount=amount)
        op = "incr_counter" if keyword == "incr" else "decr_counter"
        return StateDirective(op=op, target=name, amount=1 if amount is None else amount)

    def _parse_option(self, ctx: _ParseContext, args: str, line_no: int, column: int) -> Option:
        label, arrow, remainder = args.rpartition("->")
        if not arrow:
            raise _error(ctx, "Option must look like 'label -> destination'", line_no, column, args)
        keywords: Tuple[str, ...] = ()
        label = label.rstrip()
        if label.endswith("]") and "[" in label:
            open_at = label.rfind("[")
            keywords = self._parse_keywords(ctx, label[open_at + 1 : -1], line_no, column + open_at + 1)
            label = label[:open_at]
        label = label.strip()
        if not label:
            raise _error(ctx, "Option label is empty", line_no, column, args)
        remainder_column = column + len(args) - len(remainder)
        dest_text = remainder.lstrip()
        dest_column = remainder_column + len(remainder) - len(dest_text)
        dest_token, _, guard_text = dest_text.partition(" ")
        destination = self._parse_destination(ctx, dest_token, line_no, dest_column)

        guard = None
        guard_text = guard_text.strip()
        if guard_text:
            guard_column = dest_column + dest_text.find(guard_text)
            condition_keyword, _, condition = guard_text.partition(" ")
            if condition_keyword != "if" or not condition.strip():
                raise _error(
                    ctx, "Expected 'if <condition>' after the destination", line_no, guard_column, guard_text
                )
            condition_column = guard_column + guard_text.find(condition.strip())
            guard = self._parse_predicate(ctx, condition.strip(), line_no, condition_column)
        return Option(label=label, destination=destination, guard=guard, keywords=keywords)

    def _parse_keywords(self, ctx: _ParseContext, text: str, line_no: int, column: int) -> Tuple[str, ...]:
        keywords: List[str] = []
        offset = 0
        for part in text.split(","):
            word = part.strip()
            word_column = column + offset + len(part) - len(part.lstrip())
            offset += len(part) + 1
            if not word:
                raise _error(ctx, "Empty option keyword", line_no, word_column, text)
            if word.startswith(DIRECTIVE_PREFIX) and word[1:] not in VOCABULARY_NAMES:
                raise _error(ctx, f"Unknown word list '{word}'", line_no, word_column, word)
            keywords.append(word)
        return tuple(keywords)

    def _parse_destination(self, ctx: _ParseContext, token: str, line_no: int, column: int) -> Destination:
        token = token.strip()
        if not token:
            raise _error(ctx, "Missing destination", line_no, column, token)
        if ":" in token:
            file_part, _, block_part = token.partition(":")
            if not _FILE_ID_RE.match(file_part):
                raise _error(ctx, f"Invalid story file in destination '{token}'", line_no, column, token)
            if block_part and not _NAME_RE.match(block_part):
                raise _error(ctx, f"Invalid block name in destination '{token}'", line_no, column, token)
            return FileRef(file=file_part, block=block_part or None)
        if not _NAME_RE.match(token):
            raise _error(ctx, f"Invalid destination '{token}'", line_no, column, token)
        return BlockRef(block=token)

    def _parse_predicate(self, ctx: _ParseContext, text: str, line_no: int, column: int) -> Predicate:
        if not text.strip():
            raise _error(ctx, "Missing condition", line_no, column, text)
        tokens = _tokenize(ctx, text, line_no, column)
        return _PredicateParser(ctx, tokens, line_no, column + len(text)).parse()


_Token = Tuple[str, str, int]


def _tokenize(ctx: _ParseContext, text: str, line_no: int, column: int) -> List[_Token]:
    tokens: List[_Token] = []
    position = 0
    while position < len(text):
        if text[position].isspace():
            position += 1
            continue
        match = _TOKEN_RE.match(text, position)
        if match is None:
            raise _error(
                ctx, f"Unexpected character '{text[position]}' in condition", line_no, column + position, text
            )
        kind = match.lastgroup
        assert kind is not None
        value = match.group(kind)
        if kind == "word":
            lowered = value.lower()
            if lowered in ("and", "or", "not"):
                kind = lowered
            elif lowered in ("true", "false"):
                kind = "bool"
            else:
                raise _error(ctx, f"Unexpected word '{value}' in condition", line_no, column + position, value)
        tokens.append((kind, value, column + position))
        position = match.end()
    return tokens


class _PredicateParser:
    """Recursive descent over condition tokens: not > and > or."""

    def __init__(self, ctx: _ParseContext, tokens: List[_Token], line_no: int, end_column: int) -> None:
        self._ctx = ctx
        self._tokens = tokens
        self._index = 0
        self._line_no = line_no
        self._end_column = end_column

    def parse(self) -> Predicate:
        predicate = self._parse_or()
        if self._index < len(self._tokens):
            _, value, column = self._tokens[self._index]
            raise self._fail(f"Unexpected '{value}' in condition", column, value)
        return predicate

    def _parse_or(self) -> Predicate:
        left = self._parse_and()
        while self._peek_kind() == "or":
            self._index += 1
            left = Or(left=left, right=self._parse_and())
        return left

    def _parse_and(self) -> Predicate:
        left = self._parse_unary()
        while self._peek_kind() == "and":
            self._index += 1
            left = And(left=left, right=self._parse_unary())
        return left

    def _parse_unary(self) -> Predicate:
        if self._peek_kind() in ("not", "bang"):
            self._index += 1
            return Not(operand=self._parse_unary())
        return self._parse_primary()

    def _parse_primary(self) -> Predicate:
        kind, value, column = self._next("a condition")
        if kind == "lparen":
            inner = self._parse_or()
            closing_kind, closing_value, closing_column = self._next("')'")
            if closing_kind != "rparen":
                raise self._fail(f"Expected ')' but found '{closing_value}'", closing_column, closing_value)
            return inner
        if kind != "ref":
            raise self._fail(f"Expected 'flag:NAME' or 'counter:NAME' but found '{value}'", column, value)

        namespace, _, name = value.partition(":")
        if namespace == "flag":
            if self._peek_kind() != "cmp":
                return FlagTest(name=name)
            _, op, op_column = self._next("a comparison")
            if op not in ("==", "!="):
                raise self._fail(f"Flags only support '==' and '!=', not '{op}'", op_column, op)
            bool_kind, bool_value, bool_column = self._next("'true' or 'false'")
            if bool_kind != "bool":
                raise self._fail(f"Expected 'true' or 'false' but found '{bool_value}'", bool_column, bool_value)
            expected = bool_value.lower() == "true"
            return FlagTest(name=name, expected=expected if op == "==" else not expected)

        cmp_kind, op, op_column = self._next("a comparison")
        if cmp_kind != "cmp":
            raise self._fail(f"Expected a comparison after '{value}' but found '{op}'", op_column, op)
        int_kind, number, int_column = self._next("an integer")
        if int_kind != "int":
            raise self._fail(f"Expected an integer but found '{number}'", int_column, number)
        if op == "!=":
            return Not(operand=CounterCompare(name=name, op="==", value=int(number)))
        return CounterCompare(name=name, op=op, value=int(number))

    def _peek_kind(self) -> str | None:
        if self._index < len(self._tokens):
            return self._tokens[self._index][0]
        return None

    def _next(self, expected: str) -> _Token:
        if self._index >= len(self._tokens):
            raise self._fail(f"Condition ended early: expected {expected}", self._end_column, "")
        token = self._tokens[self._index]
        self._index += 1
        return token

    def _fail(self, message: str, column: int, construct: str) -> ParseError:
        return _error(self._ctx, message, self._line_no, column, construct)


def _split_lines(text: str) -> List[str]:
    text = text.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n")
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def parse_story(text: str, file_id: str = "<string>", grammar: Grammar | None = None) -> Story:
    """Parse ``text`` with a one-off parser."""
    return MarkupParser(grammar).parse(text, file_id)


def _error(ctx: _ParseContext, message: str, line: int, column: int, construct: str) -> ParseError:
    return ParseError(message, line=line, column=column, construct=construct, file_id=ctx.file_id)

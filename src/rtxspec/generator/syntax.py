"""Command template engine: parse command text into fields and render it back.

A template is a sequence of keywords, ``<param>`` placeholders,
``<param>...`` repeating placeholders, and nested ``[ ... ]`` optional
groups, e.g.::

    ipsec ike encryption <gateway_id> <algorithm>
    ipsec ike keepalive use <gateway_id> <switch> [<method> [<interval> <count>]]

:class:`CommandSyntax` binds the templates of one command to its parameter
declarations.  :meth:`CommandSyntax.parse` matches a command line against each
template in turn (with backtracking through optional groups and variants) and
returns the structured field mapping; absent optional parameters are filled
with their declared defaults.  :meth:`CommandSyntax.serialize` is the inverse;
optional groups whose values all equal the declared defaults are elided.

Keyword synonyms declared in ``syntax.synonyms`` are canonicalized wherever a
keyword or enum token is matched, so ``child-sa`` and ``ipsec-sa`` parse
identically.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Union

from rtxspec.exceptions import SpecificationDefectError, SyntaxMismatchError
from rtxspec.generator.field_mapper import field_name_for, variant_field_name
from rtxspec.generator.validators import (
    BOOL_TYPES,
    INT_TYPES,
    TRUE_TOKENS,
    as_int,
    as_token,
    token_matches_type,
)
from rtxspec.models import CommandSpec, Param, ParamVariant, SyntaxForm

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\[|\]|<[^<>\s]+>(?:\.\.\.)?|[^\s\[\]]+")


# ---------------------------------------------------------------------------
# Template AST
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Keyword:
    text: str


@dataclass(frozen=True)
class Placeholder:
    name: str
    repeat: bool = False


@dataclass(frozen=True)
class Group:
    nodes: tuple["Node", ...]


Node = Union[Keyword, Placeholder, Group]


@dataclass(frozen=True)
class Template:
    """A parsed command template."""

    source: str
    nodes: tuple[Node, ...]

    @property
    def placeholders(self) -> list[str]:
        """Every placeholder name, in order of first appearance."""
        return list(dict.fromkeys(p.name for p in _walk(self.nodes)))

    @property
    def required(self) -> list[str]:
        """Placeholders outside any optional group."""
        return [n.name for n in self.nodes if isinstance(n, Placeholder)]

    @property
    def repeated(self) -> list[str]:
        return [p.name for p in _walk(self.nodes) if p.repeat]


def _walk(nodes: tuple[Node, ...]) -> Iterator[Placeholder]:
    for node in nodes:
        if isinstance(node, Placeholder):
            yield node
        elif isinstance(node, Group):
            yield from _walk(node.nodes)


def parse_template(source: str) -> Template:
    """Parse a template string into a :class:`Template`.

    Raises:
        SpecificationDefectError: On unbalanced brackets or an empty group.

    Example::

        >>> t = parse_template("ipsec ike keepalive use <gw> <switch> [<method>]")
        >>> t.placeholders
        ['gw', 'switch', 'method']
    """
    stack: list[list[Node]] = [[]]
    for token in _TOKEN_RE.findall(source):
        if token == "[":
            stack.append([])
        elif token == "]":
            if len(stack) == 1:
                raise SpecificationDefectError(f"Unbalanced ']' in template '{source}'")
            nodes = stack.pop()
            if not nodes:
                raise SpecificationDefectError(f"Empty optional group in template '{source}'")
            stack[-1].append(Group(tuple(nodes)))
        elif token.startswith("<"):
            repeat = token.endswith("...")
            name = token.rstrip(".")[1:-1]
            stack[-1].append(Placeholder(name, repeat))
        else:
            stack[-1].append(Keyword(token))
    if len(stack) != 1:
        raise SpecificationDefectError(f"Unclosed '[' in template '{source}'")
    if not stack[0]:
        raise SpecificationDefectError("Empty command template")
    return Template(source, tuple(stack[0]))


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Binding:
    tokens: tuple[str, ...]
    variant: Optional[ParamVariant] = None
    repeat: bool = False


@dataclass
class _Rendered:
    tokens: list[str]
    explicit: bool
    fields: set[str] = field(default_factory=set)


class _RenderFailure(Exception):
    pass


def normalize_value(value: Any) -> Any:
    """Normalize a structured value for comparison (``1 == "1"``, ``True == "on"``)."""
    if isinstance(value, (list, tuple)):
        return [normalize_value(v) for v in value]
    if isinstance(value, bool):
        return "true" if value else "false"
    token = str(value).strip()
    lowered = token.lower()
    if lowered in ("on", "yes", "true"):
        return "true"
    if lowered in ("off", "no", "false"):
        return "false"
    number = as_int(token)
    return str(number) if number is not None else token


class CommandSyntax:
    """Template engine bound to one command's templates and parameters.

    Raises:
        SpecificationDefectError: If a template is malformed or names an
            undeclared parameter.
    """

    def __init__(self, command: CommandSpec) -> None:
        self._command = command
        self._params = command.parameters
        self._synonyms = {k.lower(): v for k, v in command.syntax.synonyms.items()}
        self._templates: dict[SyntaxForm, list[Template]] = {}
        defects: list[str] = []
        for form in SyntaxForm:
            parsed = []
            for source in command.syntax.forms(form):
                template = parse_template(self.canonical_text(source))
                for name in template.placeholders:
                    if name not in self._params:
                        defects.append(
                            f"template '{source}' references undeclared parameter '{name}'"
                        )
                parsed.append(template)
            self._templates[form] = parsed
        if defects:
            raise SpecificationDefectError(
                f"Invalid syntax templates in '{command.name}'",
                defects=defects,
                command=command.name,
            )

    def templates(self, form: SyntaxForm = SyntaxForm.SET) -> list[Template]:
        return list(self._templates[form])

    # -- text helpers -------------------------------------------------------

    def canonical(self, token: str) -> str:
        return self._synonyms.get(token.lower(), token)

    def canonical_text(self, text: str) -> str:
        """Collapse whitespace and replace keyword synonyms with canonical forms."""
        return " ".join(self.canonical(t) for t in text.split())

    @staticmethod
    def infer_form(line: str) -> SyntaxForm:
        first = line.split(maxsplit=1)[0].lower() if line.strip() else ""
        return SyntaxForm.DELETE if first == "no" else SyntaxForm.SET

    # -- parse --------------------------------------------------------------

    def parse(self, line: str, form: Optional[SyntaxForm] = None) -> dict[str, Any]:
        """Parse one command line into structured fields.

        Raises:
            SyntaxMismatchError: If no template of *form* matches the line.
        """
        form = form or self.infer_form(line)
        tokens = line.split()
        templates = self._templates[form]
        if not templates:
            raise SyntaxMismatchError(
                "parse", f"'{self._command.name}' declares no {form.value} syntax"
            )
        for template in templates:
            for end, bound in self._match(template.nodes, 0, tokens, 0, {}):
                if end == len(tokens):
                    logger.debug("'%s' matched template '%s'", line, template.source)
                    return self._to_fields(template, bound)
        raise SyntaxMismatchError(
            "parse", f"'{line}' matches no {form.value} template of '{self._command.name}'"
        )

    def _match(
        self,
        nodes: tuple[Node, ...],
        index: int,
        tokens: list[str],
        pos: int,
        bound: dict[str, _Binding],
    ) -> Iterator[tuple[int, dict[str, _Binding]]]:
        if index == len(nodes):
            yield pos, bound
            return
        node = nodes[index]
        if isinstance(node, Keyword):
            if pos < len(tokens) and self.canonical(tokens[pos]).lower() == node.text.lower():
                yield from self._match(nodes, index + 1, tokens, pos + 1, bound)
        elif isinstance(node, Group):
            for group_end, group_bound in self._match(node.nodes, 0, tokens, pos, bound):
                yield from self._match(nodes, index + 1, tokens, group_end, group_bound)
            yield from self._match(nodes, index + 1, tokens, pos, bound)
        elif node.repeat:
            param = self._params[node.name]
            end = pos
            while end < len(tokens) and self._scalar_ok(param, tokens[end]):
                end += 1
            for stop in range(end, pos, -1):
                binding = _Binding(tuple(tokens[pos:stop]), repeat=True)
                yield from self._match(
                    nodes, index + 1, tokens, stop, {**bound, node.name: binding}
                )
        else:
            for next_pos, binding in self._match_param(node.name, tokens, pos):
                yield from self._match(
                    nodes, index + 1, tokens, next_pos, {**bound, node.name: binding}
                )

    def _match_param(
        self, name: str, tokens: list[str], pos: int
    ) -> Iterator[tuple[int, _Binding]]:
        if pos >= len(tokens):
            return
        param = self._params[name]
        token = tokens[pos]
        if not param.variants:
            if self._scalar_ok(param, token):
                yield pos + 1, _Binding((self._enum_token(param, token),))
            return

        for variant in param.variants:
            if variant.value:
                if self.canonical(token).lower() != variant.value.lower():
                    continue
                if variant.type == "keyword":
                    yield pos + 1, _Binding((variant.value,), variant)
                elif pos + 1 < len(tokens) and _variant_token_ok(variant, tokens[pos + 1]):
                    yield pos + 2, _Binding((variant.value, tokens[pos + 1]), variant)
            elif _variant_token_ok(variant, token):
                yield pos + 1, _Binding((token,), variant)

    def _scalar_ok(self, param: Param, token: str) -> bool:
        if param.enum_values:
            canonical = self.canonical(token).lower()
            return any(canonical == v.lower() for v in param.enum_tokens)
        if param.type.lower() in ("string", "text", "str", "enum"):
            return True
        return token_matches_type(param.type, token)

    def _enum_token(self, param: Param, token: str) -> str:
        canonical = self.canonical(token)
        for value in param.enum_tokens:
            if value.lower() == canonical.lower():
                return value
        return token

    # -- structured conversion ---------------------------------------------

    def _to_fields(self, template: Template, bound: dict[str, _Binding]) -> dict[str, Any]:
        tokens: dict[str, str] = {}
        for name in template.placeholders:
            binding = bound.get(name)
            if binding is not None and not binding.repeat:
                tokens[name] = binding.tokens[-1]
            elif binding is None and self._params[name].default is not None:
                tokens[name] = as_token(self._params[name].default)

        fields: dict[str, Any] = {}
        for name in template.placeholders:
            param = self._params[name]
            binding = bound.get(name)
            if binding is None:
                if param.default is None:
                    continue
                value = _convert(param.type, as_token(param.default))
                variant = None
            elif binding.repeat:
                value = [_convert(param.type, t) for t in binding.tokens]
                variant = None
            else:
                variant = binding.variant
                value = self._binding_value(param, binding)
            target = self._target_field(name, param, variant, tokens.get(param.terraform_selector or ""))
            if target is None:
                raise SyntaxMismatchError(
                    "parse",
                    f"no field bound for parameter '{name}' with selector "
                    f"'{tokens.get(param.terraform_selector or '')}'",
                )
            fields[target] = value
        return fields

    @staticmethod
    def _binding_value(param: Param, binding: _Binding) -> Any:
        variant = binding.variant
        token = binding.tokens[-1]
        if variant is None:
            return _convert(param.type, token)
        if variant.terraform_value:
            return variant.terraform_value.get(token, token)
        if variant.type == "keyword":
            return token
        return _convert(variant.type, token)

    def _target_field(
        self,
        name: str,
        param: Param,
        variant: Optional[ParamVariant],
        selector_token: Optional[str],
    ) -> Optional[str]:
        if variant is not None:
            if variant.terraform_fields:
                return variant.terraform_fields.get(selector_token or "")
            if variant.terraform_field:
                return variant.terraform_field
            if param.terraform_fields and not param.terraform_selector:
                return param.terraform_fields.get(variant.name or "")
        if param.terraform_fields and param.terraform_selector:
            return param.terraform_fields.get(selector_token or "")
        if variant is not None:
            return variant_field_name(name, param, variant)
        return field_name_for(name, param)

    # -- serialize ----------------------------------------------------------

    def serialize(self, fields: dict[str, Any], form: SyntaxForm = SyntaxForm.SET) -> str:
        """Render structured *fields* as a command line.

        Among the templates of *form* that can be rendered, the one consuming
        the most fields wins; ties go to declaration order.

        Raises:
            SyntaxMismatchError: If no template of *form* can render the fields.
        """
        best: Optional[tuple[int, int, list[str]]] = None
        reasons: list[str] = []
        for order, template in enumerate(self._templates[form]):
            try:
                tokens, used = self._render(template, fields)
            except _RenderFailure as exc:
                reasons.append(f"'{template.source}': {exc}")
                continue
            candidate = (-len(used), order, tokens)
            if best is None or candidate[:2] < best[:2]:
                best = candidate
        if best is None:
            detail = "; ".join(reasons) or f"no {form.value} templates declared"
            raise SyntaxMismatchError(
                "build", f"cannot render {sorted(fields)} for '{self._command.name}': {detail}"
            )
        return " ".join(best[2])

    def _render(self, template: Template, fields: dict[str, Any]) -> tuple[list[str], set[str]]:
        rendered: dict[str, _Rendered] = {}
        for name in template.placeholders:
            value = self._render_param(name, fields)
            if value is not None:
                rendered[name] = value
        tokens = self._render_nodes(template.nodes, rendered)
        used: set[str] = set()
        for value in rendered.values():
            used |= value.fields
        return tokens, used

    def _render_nodes(self, nodes: tuple[Node, ...], rendered: dict[str, _Rendered]) -> list[str]:
        out: list[str] = []
        for node in nodes:
            if isinstance(node, Keyword):
                out.append(node.text)
            elif isinstance(node, Placeholder):
                value = rendered.get(node.name)
                if value is None:
                    raise _RenderFailure(f"no value for '{node.name}'")
                out.extend(value.tokens)
            elif any(
                rendered[p.name].explicit for p in _walk(node.nodes) if p.name in rendered
            ):
                out.extend(self._render_nodes(node.nodes, rendered))
        return out

    def _render_param(self, name: str, fields: dict[str, Any]) -> Optional[_Rendered]:
        param = self._params[name]
        selector = self._selector_token(param, fields)

        for variant in param.variants:
            target = self._target_field(name, param, variant, selector)
            if target is None or target not in fields:
                continue
            token = _reverse_value(variant, fields[target])
            if variant.type == "keyword":
                if variant.value and token.lower() == variant.value.lower():
                    return _Rendered([variant.value], True, {target})
                continue
            if not _variant_token_ok(variant, token):
                continue
            tokens = [variant.value, token] if variant.value else [token]
            return _Rendered(tokens, True, {target})

        if not param.variants or param.terraform_fields:
            target = self._target_field(name, param, None, selector)
            if target is not None and target in fields:
                value = fields[target]
                if isinstance(value, (list, tuple)):
                    tokens = [as_token(v) for v in value]
                else:
                    tokens = [as_token(value)]
                explicit = param.default is None or normalize_value(value) != normalize_value(
                    param.default
                )
                return _Rendered(tokens, explicit, {target})

        if param.default is not None:
            return _Rendered([as_token(param.default)], False)
        return None

    def _selector_token(self, param: Param, fields: dict[str, Any]) -> Optional[str]:
        if not param.terraform_selector:
            return None
        selector = self._params.get(param.terraform_selector)
        if selector is None:
            return None
        target = field_name_for(param.terraform_selector, selector)
        if target in fields:
            return as_token(fields[target])
        if selector.default is not None:
            return as_token(selector.default)
        return None


def _variant_token_ok(variant: ParamVariant, token: str) -> bool:
    if variant.pattern and not re.fullmatch(variant.pattern, token):
        return False
    if variant.type.lower() in ("string", "text", "str", "keyword"):
        return True
    return token_matches_type(variant.type, token)


def _reverse_value(variant: ParamVariant, value: Any) -> str:
    for token, structured in variant.terraform_value.items():
        if normalize_value(structured) == normalize_value(value):
            return token
    return as_token(value)


def _convert(type_tag: str, token: str) -> Any:
    tag = type_tag.lower()
    if tag in INT_TYPES:
        number = as_int(token)
        return token if number is None else number
    if tag in BOOL_TYPES:
        return token.lower() in TRUE_TOKENS
    return token

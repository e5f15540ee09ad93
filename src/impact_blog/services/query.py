"""Translate untrusted listing parameters into a typed article query.

Request parameters arrive as a flat mapping of strings (or lists of strings
for repeated keys). Every non-reserved key becomes a ``FieldFilter`` node.
Comparison operators are recognised structurally, from either a bracketed
key (``published_date[gte]=2024-01-01``) or a nested mapping
(``{"published_date": {"gte": "2024-01-01"}}``). Nothing here is evaluated
or interpolated into a query string; ``compile_filters`` maps the nodes onto
SQLAlchemy column expressions.
"""

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import ColumnElement, UnaryExpression, exists, select

from impact_blog.models.article import Article, ArticleAuthor, ArticleTag
from impact_blog.schemas.article import Tag
from impact_blog.schemas.common import PageRef
from impact_blog.services.errors import ValidationError

RESERVED_PARAMS = frozenset({"select", "sort", "page", "limit"})

# Largest value SQLite (and BIGINT columns) can bind.
MAX_SQL_INT = 2**63 - 1

DEFAULT_SORT: tuple[tuple[str, bool], ...] = (("pinned", True), ("published_date", True))

# Fields that appear in a serialized article and may be projected or sorted.
SELECTABLE_FIELDS = frozenset(
    {
        "id",
        "title",
        "published_date",
        "last_edited",
        "authors",
        "cover_picture_url",
        "article_content",
        "pinned",
        "tags",
        "created_at",
        "updated_at",
    }
)

SORTABLE_FIELDS = {
    "id": Article.id,
    "title": Article.title,
    "published_date": Article.published_date,
    "last_edited": Article.last_edited,
    "cover_picture_url": Article.cover_picture_url,
    "pinned": Article.pinned,
    "created_at": Article.created_at,
    "updated_at": Article.updated_at,
}

_BRACKET_KEY = re.compile(r"^(?P<field>[A-Za-z_][A-Za-z0-9_]*)\[(?P<token>[A-Za-z]+)\]$")


class Operator(StrEnum):
    """Comparison operators understood by the store."""

    EQ = "eq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    IN = "in"


COMPARISON_TOKENS = frozenset(op.value for op in Operator if op is not Operator.EQ)


@dataclass(frozen=True)
class FieldFilter:
    """One condition of the filter AST."""

    field: str
    op: Operator
    value: Any


@dataclass
class ArticleQuery:
    """Validated filter, projection, sort order and paging window."""

    filters: list[FieldFilter] = field(default_factory=list)
    projection: frozenset[str] | None = None
    sort: tuple[tuple[str, bool], ...] = DEFAULT_SORT
    page: int = 1
    limit: int = 10

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def paginate(self, total: int) -> dict[str, PageRef]:
        """Describe the neighbouring pages once the total match count is known."""
        pagination: dict[str, PageRef] = {}
        if self.page * self.limit < total:
            pagination["next"] = PageRef(page=self.page + 1, limit=self.limit)
        if self.skip > 0:
            pagination["prev"] = PageRef(page=self.page - 1, limit=self.limit)
        return pagination


def _coerce_int(value: Any, default: int) -> int:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return number if number >= 1 else default


def parse_filters(params: Mapping[str, Any]) -> list[FieldFilter]:
    """Build filter nodes from every non-reserved parameter."""
    filters: list[FieldFilter] = []
    for key, value in params.items():
        if key in RESERVED_PARAMS:
            continue
        if not isinstance(key, str) or not key:
            raise ValidationError("Malformed filter key")

        match = _BRACKET_KEY.match(key)
        if match:
            token = match.group("token")
            if token in COMPARISON_TOKENS:
                filters.append(_make_filter(match.group("field"), Operator(token), value))
            else:
                # Unrecognised token: the literal key is kept as an equality field.
                filters.append(_make_filter(key, Operator.EQ, value))
            continue

        if isinstance(value, Mapping):
            if not value:
                raise ValidationError(f"Empty filter for '{key}'")
            for token, operand in value.items():
                if token in COMPARISON_TOKENS:
                    filters.append(_make_filter(key, Operator(token), operand))
                else:
                    filters.append(_make_filter(f"{key}[{token}]", Operator.EQ, operand))
            continue

        filters.append(_make_filter(key, Operator.EQ, value))
    return filters


def _make_filter(field_name: str, op: Operator, value: Any) -> FieldFilter:
    if isinstance(value, Mapping):
        raise ValidationError(f"Malformed filter for '{field_name}'")

    if isinstance(value, list | tuple):
        items = [item for item in value if item is not None]
        if any(isinstance(item, Mapping | list | tuple) for item in items):
            raise ValidationError(f"Malformed filter for '{field_name}'")
        if op is Operator.EQ:
            op = Operator.IN
        elif op is not Operator.IN:
            if len(items) != 1:
                raise ValidationError(f"Operator '{op}' on '{field_name}' takes a single value")
            return FieldFilter(field_name, op, items[0])
        return FieldFilter(field_name, op, tuple(items))

    if op is Operator.IN:
        parts = [part.strip() for part in str(value).split(",")]
        return FieldFilter(field_name, op, tuple(part for part in parts if part))

    return FieldFilter(field_name, op, value)


def parse_projection(select_param: Any) -> frozenset[str] | None:
    """Turn ``select=a,b`` into a projection that always includes the id."""
    if select_param is None:
        return None
    names = _split_names(select_param)
    if not names:
        return None
    unknown = sorted(set(names) - SELECTABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown select field(s): {', '.join(unknown)}")
    return frozenset(names) | {"id"}


def parse_sort(sort_param: Any) -> tuple[tuple[str, bool], ...]:
    """Turn ``sort=-pinned,title`` into (field, descending) pairs."""
    if sort_param is None:
        return DEFAULT_SORT
    order: list[tuple[str, bool]] = []
    for name in _split_names(sort_param):
        descending = name.startswith("-")
        field_name = name.lstrip("-+")
        if field_name not in SORTABLE_FIELDS:
            raise ValidationError(f"Cannot sort by '{field_name}'")
        order.append((field_name, descending))
    return tuple(order) or DEFAULT_SORT


def _split_names(raw: Any) -> list[str]:
    values = raw if isinstance(raw, list | tuple) else [raw]
    names: list[str] = []
    for value in values:
        if not isinstance(value, str):
            raise ValidationError("Field lists must be comma-separated strings")
        names.extend(part.strip() for part in value.split(",") if part.strip())
    return names


def build_article_query(
    params: Mapping[str, Any],
    default_limit: int = 10,
    max_limit: int = 100,
) -> ArticleQuery:
    """Build an ArticleQuery from request parameters.

    Args:
        params: Query parameters; values are strings, lists of strings for
            repeated keys, or operator mappings.
        default_limit: Page size used when ``limit`` is absent or invalid.
        max_limit: Upper bound for ``limit``.

    Raises:
        ValidationError: If the filter, select or sort structure is malformed.
    """
    page = _coerce_int(_first(params.get("page")), 1)
    limit = min(_coerce_int(_first(params.get("limit")), default_limit), max_limit)
    if (page - 1) * limit > MAX_SQL_INT:
        page = 1
    return ArticleQuery(
        filters=parse_filters(params),
        projection=parse_projection(params.get("select")),
        sort=parse_sort(params.get("sort")),
        page=page,
        limit=limit,
    )


def _first(value: Any) -> Any:
    if isinstance(value, list | tuple):
        return value[0] if value else None
    return value


# Compilation onto the ORM ---------------------------------------------------

_datetime_adapter = TypeAdapter(datetime)


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("boolean is not an id")
    number = int(str(value).strip())
    if not -MAX_SQL_INT - 1 <= number <= MAX_SQL_INT:
        raise ValueError("id out of range")
    return number


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "1"):
        return True
    if text in ("false", "0"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _to_datetime(value: Any) -> datetime:
    parsed = _datetime_adapter.validate_python(value)
    # Stored timestamps are naive UTC
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed


def _to_str(value: Any) -> str:
    return str(value)


def _to_tag(value: Any) -> str:
    return Tag(str(value).strip().lower()).value


SCALAR_FIELDS: dict[str, tuple[Any, Callable[[Any], Any]]] = {
    "id": (Article.id, _to_int),
    "title": (Article.title, _to_str),
    "published_date": (Article.published_date, _to_datetime),
    "last_edited": (Article.last_edited, _to_datetime),
    "pinned": (Article.pinned, _to_bool),
    "cover_picture_url": (Article.cover_picture_url, _to_str),
}


def _coerce(node: FieldFilter, convert: Callable[[Any], Any]) -> Any:
    try:
        if node.op is Operator.IN:
            return [convert(item) for item in node.value]
        return convert(node.value)
    except (TypeError, ValueError, PydanticValidationError) as e:
        raise ValidationError(f"Invalid value for '{node.field}'") from e


def _membership(node: FieldFilter) -> ColumnElement[bool]:
    if node.op not in (Operator.EQ, Operator.IN):
        raise ValidationError(f"Operator '{node.op}' is not supported on '{node.field}'")

    if node.field == "tags":
        values = _coerce(node, _to_tag)
        column, link = ArticleTag.tag, ArticleTag
    else:
        values = _coerce(node, _to_int)
        column, link = ArticleAuthor.user_id, ArticleAuthor

    condition = column.in_(values) if node.op is Operator.IN else column == values
    return exists(select(link.article_id).where(link.article_id == Article.id, condition))


def compile_filter(node: FieldFilter) -> ColumnElement[bool]:
    """Compile one filter node into an SQLAlchemy condition."""
    if node.field in ("tags", "authors"):
        return _membership(node)

    if node.field not in SCALAR_FIELDS:
        raise ValidationError(f"Unknown filter field '{node.field}'")

    column, convert = SCALAR_FIELDS[node.field]
    value = _coerce(node, convert)

    match node.op:
        case Operator.EQ:
            return column == value
        case Operator.GT:
            return column > value
        case Operator.GTE:
            return column >= value
        case Operator.LT:
            return column < value
        case Operator.LTE:
            return column <= value
        case Operator.IN:
            return column.in_(value)
    raise ValidationError(f"Unsupported operator '{node.op}'")


def compile_filters(filters: list[FieldFilter]) -> list[ColumnElement[bool]]:
    """Compile all filter nodes; they are combined with AND."""
    return [compile_filter(node) for node in filters]


def compile_sort(sort: tuple[tuple[str, bool], ...]) -> list[UnaryExpression]:
    """Compile (field, descending) pairs into ORDER BY clauses."""
    clauses = []
    for field_name, descending in sort:
        column = SORTABLE_FIELDS[field_name]
        clauses.append(column.desc() if descending else column.asc())
    # Stable order between pages
    clauses.append(Article.id.desc())
    return clauses

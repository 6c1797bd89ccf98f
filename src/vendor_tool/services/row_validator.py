"""Row validation: coerce one mapped CSV row under an entity rule set"""
from dataclasses import dataclass, field
from typing import Any, Dict, List

from email_validator import validate_email, EmailNotValidError

from src.vendor_tool.schemas.csv_import import FieldIssue, RawRow
from src.vendor_tool.services.csv_normalizer import (
    format_accepted_dates,
    normalize_choice,
    normalize_email,
    normalize_text,
    parse_date,
    parse_decimal,
)
from src.vendor_tool.services.import_rules import EntitySchema, FieldSpec, ImportContext


@dataclass
class RowValidation:
    canonical_data: Dict[str, Any] = field(default_factory=dict)
    errors: List[FieldIssue] = field(default_factory=list)
    warnings: List[FieldIssue] = field(default_factory=list)


def translate_row(row: RawRow, mapping: Dict[str, str], schema: EntitySchema) -> Dict[str, str]:
    """Re-key a raw row by canonical field, dropping headers the schema does not know."""
    known = set(schema.expected_headers)
    translated = {}
    for original, value in row.values.items():
        canonical = mapping.get(original, original)
        if canonical in known and canonical not in translated:
            translated[canonical] = value
    return translated


def _coerce(spec: FieldSpec, raw: str, validation: RowValidation) -> Any:
    errors, warnings = validation.errors, validation.warnings

    if spec.max_length and len(raw) > spec.max_length:
        errors.append(FieldIssue(
            field=spec.key,
            message=f"{spec.label} must be at most {spec.max_length} characters",
            value=raw,
        ))
        return None

    if spec.kind == "string":
        return normalize_text(raw)

    if spec.kind == "email":
        try:
            return validate_email(normalize_email(raw), check_deliverability=False).normalized
        except EmailNotValidError as e:
            errors.append(FieldIssue(field=spec.key, message=f"Invalid email address: {e}", value=raw))
            return None

    if spec.kind == "currency":
        code = normalize_text(raw).upper()
        if len(code) != 3 or not code.isalpha():
            errors.append(FieldIssue(field=spec.key, message=f"{spec.label} must be a 3-letter code", value=raw))
            return None
        return code

    if spec.kind == "decimal":
        number = parse_decimal(raw)
        if number is None:
            errors.append(FieldIssue(field=spec.key, message=f"{spec.label} must be a valid number", value=raw))
            return None
        if spec.positive and number <= 0:
            errors.append(FieldIssue(field=spec.key, message=f"{spec.label} must be a positive number", value=raw))
            return None
        if spec.min_value is not None and number < spec.min_value:
            errors.append(FieldIssue(
                field=spec.key,
                message=f"{spec.label} must be between {spec.min_value} and {spec.max_value}"
                if spec.max_value is not None else f"{spec.label} cannot be below {spec.min_value}",
                value=raw,
            ))
            return None
        if spec.max_value is not None and number > spec.max_value:
            errors.append(FieldIssue(
                field=spec.key,
                message=f"{spec.label} cannot exceed {spec.max_value}",
                value=raw,
            ))
            return None
        if spec.warn_above is not None and number > spec.warn_above:
            warnings.append(FieldIssue(
                field=spec.key,
                message=f"{spec.label} {number} is unusually high",
                value=raw,
            ))
        return number

    if spec.kind == "date":
        parsed = parse_date(raw)
        if parsed is None:
            errors.append(FieldIssue(
                field=spec.key,
                message=f"Invalid {spec.label.lower()} '{raw}'. Use {format_accepted_dates()}",
                value=raw,
            ))
        return parsed

    if spec.kind == "choice":
        choice, via_alias = normalize_choice(raw, spec.choices, spec.choice_aliases, spec.choice_case)
        if choice is None:
            errors.append(FieldIssue(
                field=spec.key,
                message=f"Invalid {spec.label.lower()}. Use: {', '.join(spec.choices)}",
                value=raw,
            ))
        elif via_alias:
            warnings.append(FieldIssue(
                field=spec.key,
                message=f"{spec.label} '{raw}' interpreted as {choice}",
                value=raw,
            ))
        return choice

    raise ValueError(f"unknown field kind: {spec.kind}")


def validate_row(
    row: RawRow,
    mapping: Dict[str, str],
    schema: EntitySchema,
    context: ImportContext
) -> RowValidation:
    validation = RowValidation()
    values = translate_row(row, mapping, schema)

    if row.extra_cells:
        validation.errors.append(FieldIssue(
            field="_row",
            message=f"Row has {len(row.extra_cells)} more value(s) than the header has columns",
            value=",".join(row.extra_cells),
        ))

    for spec in schema.fields:
        raw = (values.get(spec.key) or "").strip()

        if not raw:
            if spec.required:
                validation.errors.append(FieldIssue(field=spec.key, message=f"{spec.label} is required"))
            elif spec.default is not None:
                default = spec.default(context)
                validation.canonical_data[spec.key] = default
                if spec.default_warning:
                    validation.warnings.append(FieldIssue(
                        field=spec.key,
                        message=spec.default_warning.format(value=default),
                    ))
            else:
                validation.canonical_data[spec.key] = None
            continue

        value = _coerce(spec, raw, validation)
        if value is not None:
            validation.canonical_data[spec.key] = value

    for rule in schema.cross_rules:
        rule(validation.canonical_data, values, context, validation.errors, validation.warnings)

    return validation

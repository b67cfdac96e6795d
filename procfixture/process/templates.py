"""
Argument templating for supervised processes.

Templates use `str.format` placeholders, e.g. `--listen-client-urls={url}`.
Only named placeholders present in the render context are allowed.
"""
import re
import string
from typing import Any, Dict, Iterable, List, Mapping, Optional
from procfixture.exceptions import TemplateError

_formatter = string.Formatter()


def _placeholder_root(field_name: str) -> str:
    """'url.hostname' -> 'url', 'ports[0]' -> 'ports'"""
    return re.split(r"[.\[]", field_name, maxsplit=1)[0]


def render_template(template: str, context: Mapping[str, Any]) -> str:
    """
    Substitutes the context values into a single argument template.

    :param template: The template string.
    :param context: Placeholder names and their values.
    :return str: The rendered argument.
    :raises TemplateError: On unknown placeholders or malformed syntax.
    """
    try:
        fields = [field for _, field, _, _ in _formatter.parse(template) if field is not None]
    except ValueError as e:
        raise TemplateError(f"malformed argument template '{template}': {e}", template) from e

    for field in fields:
        root = _placeholder_root(field)
        if not root or root.isdigit():
            raise TemplateError(f"argument template '{template}' uses a positional placeholder", template)
        if root not in context:
            known = ", ".join(sorted(context))
            raise TemplateError(
                f"argument template '{template}' references unknown placeholder '{root}' (known: {known})",
                template,
            )

    try:
        return template.format_map(context)
    except (AttributeError, IndexError, KeyError, ValueError) as e:
        raise TemplateError(f"failed to render argument template '{template}': {e}", template) from e


def render_templates(templates: Iterable[str], context: Mapping[str, Any]) -> List[str]:
    """Renders each template in order; see `render_template`."""
    return [render_template(t, context) for t in templates]


def flatten_args(extra_args: Optional[Mapping[str, str]]) -> List[str]:
    """Turns {'name': 'value'} into ['--name=value'], sorted by flag name."""
    if not extra_args:
        return []
    return [f"--{name.lstrip('-')}={value}" for name, value in sorted(extra_args.items())]


def _flag_name(arg: str) -> Optional[str]:
    if not arg.startswith("-"):
        return None
    return arg.lstrip("-").split("=", 1)[0]


def merge_args(defaults: Iterable[str], extra_args: Optional[Mapping[str, str]]) -> List[str]:
    """
    Merges user supplied flags into the default argument templates.

    A user flag replaces the default flag of the same name in place; flags
    without a default counterpart are appended. Neither input is modified.

    :param defaults: Default argument templates.
    :param extra_args: Flag names (with or without leading dashes) mapped to values.
    :return list: The merged argument templates.
    """
    overrides: Dict[str, str] = {_flag_name(arg): arg for arg in flatten_args(extra_args)}

    merged = []
    for arg in defaults:
        name = _flag_name(arg)
        if name is not None and name in overrides:
            merged.append(overrides.pop(name))
        else:
            merged.append(arg)

    merged.extend(overrides.values())
    return merged

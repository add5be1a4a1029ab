"""Markdown prompt templates for the chain stages.

Each stage renders one ``<stage>.md`` file from this package through a
shared Jinja2 environment. Optional inputs are guarded with
``{% if ... %}`` in the templates, so callers pass only what they have.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, Template, TemplateNotFound

_PROMPTS_DIR = Path(__file__).parent


@lru_cache(maxsize=1)
def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(_PROMPTS_DIR),
        keep_trailing_newline=True,
        autoescape=False,
    )


def _template(stage: str) -> Template:
    try:
        return _environment().get_template(f"{stage}.md")
    except TemplateNotFound:
        raise FileNotFoundError(
            f"Prompt template not found: {_PROMPTS_DIR / f'{stage}.md'}"
        ) from None


def render_prompt(template_name: str, **variables: object) -> str:
    """Render the stage prompt ``template_name`` with ``variables``.

    Raises:
        FileNotFoundError: If no ``<template_name>.md`` ships with the package.
    """
    return _template(template_name).render(**variables)

"""Demo-login discovery cascade.

Each strategy inspects the fetched login page (and, for the last one, the
remote host) and either returns the :class:`LoginAction` to perform or
``None``. :func:`find_login_action` walks :data:`LOGIN_STRATEGIES` in order
and stops at the first match.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import httpx

from flowcore_catalog.config.config import CrawlerSettings
from flowcore_catalog.utils.html_query import Document, Node
from flowcore_catalog.utils.logger import session_logger

# Anchors tried in order; most specific first.
DEMO_ANCHOR_SELECTORS: tuple[str, ...] = (
    'a[href*="demo"]',
    'a.demo-login[href]',
    'a#demo-login[href]',
    'a[href*="guest"]',
    'a[href]:-soup-contains("Demo")',
    'a[href]:-soup-contains("Guest")',
)

DEMO_CONTROL_SELECTORS: tuple[str, ...] = (
    'button[onclick*="demo"]',
    'input[onclick*="demo"]',
    'button.demo-login',
    'button#demo-login',
    'button:-soup-contains("Demo")',
    'input[value*="Demo"]',
    'button[onclick]',
    'input[onclick]',
)

WELL_KNOWN_DEMO_PATHS: tuple[str, ...] = (
    "/demo",
    "/demo-login",
    "/login/demo",
    "/auth/demo",
)

_ONCLICK_TARGET_RE = re.compile(
    r"""(?:window\.)?location(?:\.href)?\s*=\s*['"]([^'"]+)['"]"""
)


@dataclass(frozen=True)
class LoginAction:
    """A resolved demo-login step: follow ``url`` or submit a form to it."""

    strategy: str
    url: str
    method: str = "GET"
    data: dict[str, str] = field(default_factory=dict)

    @property
    def is_form(self) -> bool:
        return bool(self.data) or self.method != "GET"


@dataclass
class LoginContext:
    page: Document
    client: httpx.AsyncClient
    settings: CrawlerSettings


LoginStrategy = Callable[[LoginContext], Awaitable["LoginAction | None"]]


def _first_match(page: Document, selectors: tuple[str, ...]) -> tuple[str, Node] | None:
    for selector in selectors:
        node = page.select_one(selector)
        if node is not None:
            return selector, node
    return None


async def anchor_keyword_strategy(ctx: LoginContext) -> LoginAction | None:
    """An anchor whose target or label mentions demo/guest access."""

    for selector in DEMO_ANCHOR_SELECTORS:
        for node in ctx.page.select(selector):
            href = node.attr("href").strip()
            if not href or href.startswith(("#", "javascript:")):
                continue
            url = ctx.settings.resolve(href)
            if url:
                return LoginAction("anchor", url)
    return None


async def inline_handler_strategy(ctx: LoginContext) -> LoginAction | None:
    """A button or input whose ``onclick`` assigns ``location.href``."""

    for selector in DEMO_CONTROL_SELECTORS:
        for node in ctx.page.select(selector):
            match = _ONCLICK_TARGET_RE.search(node.attr("onclick"))
            url = ctx.settings.resolve(match.group(1)) if match else ""
            if url:
                return LoginAction("inline-handler", url)
    return None


def _form_defaults(form: Node) -> dict[str, str]:
    data: dict[str, str] = {}
    for field_node in form.select("input[name]"):
        data[field_node.attr("name")] = field_node.attr("value")
    return data


async def form_submission_strategy(ctx: LoginContext) -> LoginAction | None:
    """Submit a login form with its default values.

    A form wrapping a demo control wins over the first form on the page.
    """

    form: Node | None = None
    matched = _first_match(ctx.page, DEMO_CONTROL_SELECTORS)
    if matched is not None:
        form = matched[1].closest("form")
    if form is None:
        form = ctx.page.select_one("form")
    if form is None:
        return None

    action = form.attr("action").strip()
    url = (ctx.settings.resolve(action) if action else "") or ctx.settings.login_url
    method = (form.attr("method") or "POST").strip().upper()
    return LoginAction("form", url, method=method, data=_form_defaults(form))


async def well_known_path_strategy(ctx: LoginContext) -> LoginAction | None:
    """Probe a short list of conventional guest-login paths with HEAD."""

    for path in WELL_KNOWN_DEMO_PATHS:
        url = ctx.settings.resolve(path)
        try:
            response = await ctx.client.head(url)
        except httpx.HTTPError as exc:
            session_logger.debug("[LOGIN] Probe %s failed: %s", url, exc)
            continue
        if response.status_code == 200:
            return LoginAction("well-known-path", url)
    return None


LOGIN_STRATEGIES: tuple[tuple[str, LoginStrategy], ...] = (
    ("anchor", anchor_keyword_strategy),
    ("inline-handler", inline_handler_strategy),
    ("form", form_submission_strategy),
    ("well-known-path", well_known_path_strategy),
)


async def find_login_action(
    ctx: LoginContext,
    strategies: tuple[tuple[str, LoginStrategy], ...] = LOGIN_STRATEGIES,
) -> LoginAction | None:
    for name, strategy in strategies:
        action = await strategy(ctx)
        if action is not None:
            session_logger.info("[LOGIN] Strategy '%s' matched: %s %s", name, action.method, action.url)
            return action
    session_logger.warning("[LOGIN] No demo-login entry point found on %s", ctx.settings.login_url)
    return None


__all__ = [
    "LOGIN_STRATEGIES",
    "LoginAction",
    "LoginContext",
    "anchor_keyword_strategy",
    "find_login_action",
    "form_submission_strategy",
    "inline_handler_strategy",
    "well_known_path_strategy",
]

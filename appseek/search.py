from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .detect import Application


NAME_SUBSTRING = "name-substring"
EXEC_SUBSTRING = "exec-substring"
NAME_FUZZY = "name-fuzzy"
EXEC_FUZZY = "exec-fuzzy"


@dataclass(frozen=True)
class ScoredApp:
    app: Application
    score: int
    kind: str


def fuzzy_score(query: str, candidate: str) -> int | None:
    """Score ``query`` as an in-order subsequence of ``candidate``.

    Both strings are expected lowercased. Returns ``None`` when some query
    character is never matched.
    """
    if not query or not candidate:
        return None

    qi = 0
    score = 0
    last_match = -1
    for ci, char in enumerate(candidate):
        if qi >= len(query):
            break
        if char != query[qi]:
            continue
        score += 5
        if last_match == ci - 1:
            score += 10
        if qi == 0:
            score += max(15 - ci * 2, 0)
        last_match = ci
        qi += 1

    if qi != len(query):
        return None
    return score - len(candidate)


def score_app(app: Application, query: str) -> tuple[str, int]:
    lower_name = app.name.lower()
    lower_exec = app.exec_cmd.lower()

    idx = lower_name.find(query)
    if idx >= 0:
        return NAME_SUBSTRING, 2000 - idx * 20 - len(lower_name)
    idx = lower_exec.find(query)
    if idx >= 0:
        return EXEC_SUBSTRING, 1500 - idx * 20 - len(lower_exec)

    score = fuzzy_score(query, lower_name)
    if score is not None:
        return NAME_FUZZY, 1000 + score
    score = fuzzy_score(query, lower_exec)
    if score is not None:
        return EXEC_FUZZY, 800 + score
    return "", 0


def _result_key(result: ScoredApp) -> tuple[int, str, str]:
    return -result.score, result.app.name.lower(), result.app.name


def rank(apps: Iterable[Application], query: str) -> list[ScoredApp]:
    query_norm = query.strip().lower()
    if not query_norm:
        return []

    results: list[ScoredApp] = []
    for app in apps:
        kind, score = score_app(app, query_norm)
        if score > 0:
            results.append(ScoredApp(app=app, score=score, kind=kind))
    results.sort(key=_result_key)
    return results


def filter_apps(apps: Iterable[Application], query: str) -> list[Application]:
    """Apps matching ``query``, best first. A blank query matches nothing."""
    return [result.app for result in rank(apps, query)]


def explain(app: Application, query: str) -> tuple[str, int]:
    query_norm = query.strip().lower()
    if not query_norm:
        return "", 0
    return score_app(app, query_norm)

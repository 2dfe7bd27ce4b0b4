# File: doccrawler/parser/robots_parser.py
"""doccrawler.parser.robots_parser: group-scoped robots.txt rules.

Supports ``User-agent``, ``Allow``, ``Disallow``, ``Crawl-delay`` and
``Sitemap``; ``*`` and ``$`` wildcards; longest match wins, ``Allow`` wins
ties. A group naming the user agent beats the ``*`` group for both path
rules and crawl-delay.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

__all__ = ("RobotsGroup", "RobotsTxtRules")

_Directive = Tuple[str, str]


@dataclass
class RobotsGroup:
    """One ``User-agent`` block and the directives that follow it."""

    agents: List[str] = field(default_factory=list)
    directives: List[_Directive] = field(default_factory=list)
    crawl_delay: Optional[float] = None

    @property
    def has_rules(self) -> bool:
        return bool(self.directives) or self.crawl_delay is not None


class RobotsTxtRules:
    """Parser and checker for robots.txt rules."""

    _WILDCARD_RE = re.compile(r"(\*|\$)")

    def __init__(self, text: str) -> None:
        self.groups: List[RobotsGroup] = []
        self.sitemaps: List[str] = []
        self._regex_cache: Dict[str, re.Pattern[str]] = {}
        self._parse(text)

    def can_fetch(self, user_agent: str, path: str) -> bool:
        """Return True if *user_agent* may fetch *path* (path plus optional query)."""
        group = self._match_group(user_agent)
        if group is None:
            return True
        best_len = -1
        allow: Optional[bool] = None
        for directive, pattern in group.directives:
            if not self._match_path(path, pattern):
                continue
            length = self._rule_len(pattern)
            if length > best_len or (length == best_len and directive == "allow"):
                best_len = length
                allow = directive == "allow"
        return True if allow is None else allow

    def crawl_delay(self, user_agent: str) -> Optional[float]:
        """Crawl-delay in seconds for *user_agent*, or None."""
        group = self._match_group(user_agent)
        return None if group is None else group.crawl_delay

    # ---- parsing ---------------------------------------------------------- #

    def _parse(self, text: str) -> None:
        current: Optional[RobotsGroup] = None
        for raw in text.splitlines():
            line = raw.split("#", 1)[0].strip()
            if not line or ":" not in line:
                continue
            key, _, val = line.partition(":")
            key = key.lower().strip()
            val = val.strip()
            if key == "sitemap":
                if val:
                    self.sitemaps.append(val)
                continue
            if key == "user-agent":
                # consecutive User-agent lines share one group
                if current is None or current.has_rules:
                    current = RobotsGroup()
                    self.groups.append(current)
                current.agents.append(val.lower())
                continue
            if current is None:
                current = RobotsGroup(agents=["*"])
                self.groups.append(current)
            if key == "allow":
                if val:
                    current.directives.append(("allow", val))
            elif key == "disallow":
                # empty Disallow allows everything
                if val:
                    current.directives.append(("disallow", val))
            elif key == "crawl-delay":
                try:
                    current.crawl_delay = float(val)
                except ValueError:
                    pass

    # ---- matching --------------------------------------------------------- #

    def _match_group(self, user_agent: str) -> Optional[RobotsGroup]:
        ua = user_agent.lower()
        product = ua.split("/", 1)[0]
        best: Optional[RobotsGroup] = None
        best_len = 0
        for group in self.groups:
            for agent in group.agents:
                if agent != "*" and agent and product.startswith(agent):
                    if len(agent) > best_len:
                        best, best_len = group, len(agent)
        if best is not None:
            return best
        for group in self.groups:
            if "*" in group.agents:
                return group
        return None

    def _match_path(self, path: str, pattern: str) -> bool:
        if pattern not in self._regex_cache:
            esc = re.escape(pattern).replace(r"\*", ".*")
            if esc.endswith(r"\$"):
                esc = esc[:-2] + "$"
            self._regex_cache[pattern] = re.compile(f"^{esc}")
        return bool(self._regex_cache[pattern].match(path))

    @classmethod
    def _rule_len(cls, pattern: str) -> int:
        return len(cls._WILDCARD_RE.sub("", pattern))

"""
GitHub collector. Watches releases, tags and recent commits for configured
chain/L2/infra repos and keeps the ones whose wording hints at an early play.

Uses the GitHub REST API. Unauthenticated works; a token raises rate limits.
"""

import logging
import time
from urllib.parse import quote

import requests

from collectors.base import Collector
from config.settings import Config
from filters.scorer import looks_early_signal
from models import Signal
from storage.daily import DailyStore
from storage.state import parse_timestamp, isoformat, utcnow

log = logging.getLogger(__name__)

API = "https://api.github.com"


class GitHubCollector(Collector):
    def __init__(self, store: DailyStore, config: Config, clock=utcnow, delay: float = 1.0):
        super().__init__(store, clock)
        self._repos = config.github_repos
        self._delay = delay
        self._session = requests.Session()
        self._token = config.github_token
        if self._token and not self._token.startswith(("ghp_...", "your")):
            self._session.headers["Authorization"] = f"Bearer {self._token}"
        self._session.headers["Accept"] = "application/vnd.github+json"
        self._session.headers["X-GitHub-Api-Version"] = "2022-11-28"
        self._session.headers["User-Agent"] = "early-signal/0.1"
        self._auth_failed = False

    def name(self) -> str:
        return "github"

    def _request(self, path: str, params: dict | None = None) -> list:
        """GET an API list endpoint. Falls back to unauthenticated on 401."""
        url = f"{API}{path}"
        resp = self._session.get(url, params=params, timeout=15)

        if resp.status_code == 401 and "Authorization" in self._session.headers:
            if not self._auth_failed:
                log.warning("GitHub token rejected (401). Falling back to unauthenticated.")
                self._auth_failed = True
                del self._session.headers["Authorization"]
            resp = self._session.get(url, params=params, timeout=15)

        if resp.status_code != 200:
            raise requests.HTTPError(f"GitHub API {url}: HTTP {resp.status_code}", response=resp)

        data = resp.json()
        return data if isinstance(data, list) else []

    def collect(self) -> list[Signal]:
        signals: list[Signal] = []

        for entry in self._repos:
            repo = entry["repo"]
            try:
                items = self._repo_items(repo, entry.get("category", "general"), entry.get("priority", 1))
            except requests.RequestException as e:
                log.warning(f"GitHub API error for {repo}: {e}")
                self.errors.append({"source": repo, "error": str(e)})
                continue

            kept = [s for s in items if self._keep(s)]
            log.debug(f"{repo}: {len(kept)} signals from {len(items)} items")
            signals.extend(kept)

            if self._delay:
                time.sleep(self._delay)

        log.info(f"GitHub: {len(signals)} signals from {len(self._repos)} repos")
        return signals

    def _keep(self, signal: Signal) -> bool:
        # Tags carry no date of their own; they are stamped at fetch time
        is_tag = (signal.original or {}).get("type") == "tag"
        if not is_tag and not self.is_recent(parse_timestamp(signal.time)):
            return False
        tag = (signal.original or {}).get("tag") or ""
        return looks_early_signal(f"{signal.title} {tag}")

    def _repo_items(self, repo: str, category: str, priority: int) -> list[Signal]:
        items: list[Signal] = []

        try:
            items.extend(self._releases(repo, category, priority))
        except requests.RequestException as e:
            log.warning(f"Releases API failed for {repo}: {e}")

        if not items:
            try:
                items.extend(self._tags(repo, category, priority))
            except requests.RequestException as e:
                log.warning(f"Tags API failed for {repo}: {e}")

        try:
            items.extend(self._commits(repo, category, priority))
        except requests.RequestException as e:
            log.warning(f"Commits API failed for {repo}: {e}")
        return items

    def _signal(self, repo: str, category: str, priority: int, kind: str, title: str,
                link: str, when: str, tag: str | None = None, body: str = "") -> Signal:
        return Signal(
            source=repo,
            title=title,
            link=link,
            time=when,
            channel=self.name(),
            category=category,
            priority=priority,
            original={"type": kind, "repo": repo, "tag": tag, "body": body[:2000]},
        )

    def _releases(self, repo: str, category: str, priority: int) -> list[Signal]:
        out = []
        for r in self._request(f"/repos/{repo}/releases", params={"per_page": 20}):
            out.append(self._signal(
                repo, category, priority, "release",
                title=r.get("name") or r.get("tag_name") or "(no title)",
                link=r.get("html_url", ""),
                when=r.get("published_at") or r.get("created_at") or "",
                tag=r.get("tag_name"),
                body=r.get("body") or "",
            ))
        return out

    def _tags(self, repo: str, category: str, priority: int) -> list[Signal]:
        now = isoformat(self.clock())
        out = []
        for t in self._request(f"/repos/{repo}/tags", params={"per_page": 20}):
            name = t.get("name", "")
            out.append(self._signal(
                repo, category, priority, "tag",
                title=name,
                link=f"https://github.com/{repo}/releases/tag/{quote(name, safe='')}",
                when=now,
                tag=name,
            ))
        return out

    def _commits(self, repo: str, category: str, priority: int) -> list[Signal]:
        out = []
        for c in self._request(f"/repos/{repo}/commits", params={"per_page": 10}):
            commit = c.get("commit") or {}
            message = commit.get("message") or ""
            author = commit.get("author") or {}
            committer = commit.get("committer") or {}
            out.append(self._signal(
                repo, category, priority, "commit",
                title=message.split("\n")[0] if message else "commit",
                link=c.get("html_url", ""),
                when=author.get("date") or committer.get("date") or isoformat(self.clock()),
                body=message,
            ))
        return out

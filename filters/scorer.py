"""
Deterministic relevance filters and priority for crypto signals.
No LLM. Just keyword matching and a fixed boost table.

Three keyword sets:
- SIGNAL_KEYWORDS: release/commit wording that hints at an early play
  (testnet, mainnet, airdrop, staking, upgrade...). Applied to GitHub items.
- CRYPTO_KEYWORDS: plain substrings that mark a chat post as crypto-related.
  Applied to Telegram posts.
- NEWS_TOPICS: topic filter for broad news feeds that publish off-topic items.

Priority is derived, never part of identity: channel boost + category boost.
"""

import re
from datetime import datetime, timezone

from models import Signal
from storage.state import parse_timestamp


SIGNAL_KEYWORDS = re.compile(
    r"(testnet|mainnet|devnet|incentivized|genesis|rc\b|beta|alpha|airdrop|points|"
    r"migration|staking|validator|node|launch|upgrade|fork|hard|soft|eip|grant|"
    r"ecosystem|fund|eligible|app|tx|claimable|claimer|bridge|deploy)",
    re.IGNORECASE,
)

NEWS_TOPICS = re.compile(
    r"bitcoin|ethereum|defi|nft|dao|governance|airdrop|testnet|mainnet|upgrade|fork"
)

CRYPTO_KEYWORDS: list[str] = [
    # Events
    "airdrop", "testnet", "mainnet", "devnet", "launch", "listing", "whitelist",
    "presale", "ido", "ico", "tge", "snapshot", "claim", "points", "quest",
    "incentive", "reward", "staking", "restaking", "farming", "yield",
    # Chains and ecosystems
    "bitcoin", "btc", "ethereum", "eth", "solana", "sol", "layer 2", "l2",
    "rollup", "zk", "arbitrum", "optimism", "base", "polygon", "sui", "aptos",
    "celestia", "eigen", "cosmos", "ton",
    # Sectors
    "defi", "dex", "nft", "dao", "bridge", "wallet", "token", "crypto",
    "blockchain", "web3", "protocol", "governance", "funding", "raise",
]

URL_PATTERN = re.compile(r"https?://\S+")


# Priority boosts
CHANNEL_BOOST: dict[str, int] = {
    "github": 2,
    "telegram": 1,
    "rss": 1,
}

CATEGORY_BOOST: dict[str, int] = {
    "core-L1": 3,
    "L2": 2,
    "DeFi": 2,
    "NFT": 1,
}


def looks_early_signal(text: str) -> bool:
    return bool(SIGNAL_KEYWORDS.search(text or ""))


def has_crypto_keyword(text: str) -> bool:
    lowered = (text or "").lower()
    return any(k in lowered for k in CRYPTO_KEYWORDS)


def matches_news_topics(text: str) -> bool:
    return bool(NEWS_TOPICS.search((text or "").lower()))


def first_link(text: str) -> str:
    match = URL_PATTERN.search(text or "")
    return match.group(0) if match else ""


def calculate_priority(signal: Signal) -> int:
    """Base 1, plus the channel boost, plus the category boost."""
    return 1 + CHANNEL_BOOST.get(signal.channel, 0) + CATEGORY_BOOST.get(signal.category, 0)


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def sort_signals(signals: list[Signal]) -> list[Signal]:
    """Priority descending, then newest first. Undated signals sort last."""
    return sorted(
        signals,
        key=lambda s: (s.priority, parse_timestamp(s.time) or _EPOCH),
        reverse=True,
    )

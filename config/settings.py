"""
Configuration. All settings from env vars, source lists as Python literals.
No YAML. No TOML parsing. Just a dataclass you edit.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

# Auto-load .env file so you don't need `export $(grep ...)` every time
from dotenv import load_dotenv
load_dotenv()

MAX_NUMBERED_KEYS = 10


def numbered_keys(var: str) -> list[tuple[str, str]]:
    """
    Collect API keys from VAR1..VAR10, falling back to plain VAR.
    Returns [(env var name, value)] in order, blanks skipped.
    """
    keys = []
    for i in range(1, MAX_NUMBERED_KEYS + 1):
        value = os.environ.get(f"{var}{i}", "").strip()
        if value:
            keys.append((f"{var}{i}", value))
    if not keys:
        value = os.environ.get(var, "").strip()
        if value:
            keys.append((var, value))
    return keys


def _float(var: str, default: str) -> float:
    return float(os.environ.get(var, default))


def _int(var: str, default: str) -> int:
    return int(os.environ.get(var, default))


@dataclass
class Config:
    # Working directory for trackers and dated batches
    data_dir: Path = Path(os.environ.get("SIGNAL_DATA_DIR", "data"))

    # Wall-clock limit for one CLI invocation, seconds. 0 = none.
    run_timeout: int = _int("SIGNAL_RUN_TIMEOUT", "0")

    # Timezone used when rendering post times in published messages
    display_timezone: str = os.environ.get("SIGNAL_DISPLAY_TZ", "Europe/Zurich")

    # ── LLM ──
    # Provider: "gemini" | "openai" | "openrouter" | "claude"
    llm_provider: str = os.environ.get("SIGNAL_LLM_PROVIDER", "gemini")

    gemini_model: str = os.environ.get("SIGNAL_GEMINI_MODEL", "gemini-1.5-flash")
    openai_model: str = os.environ.get("SIGNAL_OPENAI_MODEL", "gpt-4o-mini")
    openrouter_model: str = os.environ.get("SIGNAL_OPENROUTER_MODEL", "google/gemini-flash-1.5")
    anthropic_model: str = os.environ.get("SIGNAL_ANTHROPIC_MODEL", "claude-sonnet-4-20250514")

    # Free tiers cap requests per key per day
    llm_max_requests_per_key: int = _int("SIGNAL_LLM_MAX_REQUESTS_PER_KEY", "50")
    analysis_batch_size: int = _int("SIGNAL_ANALYSIS_BATCH_SIZE", "10")
    analysis_batch_delay: float = _float("SIGNAL_ANALYSIS_BATCH_DELAY", "5")

    # ── Telegram publishing ──
    telegram_token: str = os.environ.get("TG_TOKEN", "")
    telegram_channel_id: str = os.environ.get("TELEGRAM_CHANNEL_ID", "")
    message_delay: float = _float("SIGNAL_MESSAGE_DELAY", "2")
    summary_delay: float = _float("SIGNAL_SUMMARY_DELAY", "3")
    max_risk_alerts: int = _int("SIGNAL_MAX_RISK_ALERTS", "10")

    # ── Deduplication thresholds ──
    # Before analysis: cheap pass, content = title
    analyze_content_threshold: float = _float("SIGNAL_ANALYZE_CONTENT_THRESHOLD", "0.8")
    analyze_title_threshold: float = _float("SIGNAL_ANALYZE_TITLE_THRESHOLD", "0.9")
    analyze_max_source_per_hour: int = _int("SIGNAL_ANALYZE_MAX_SOURCE_PER_HOUR", "5")
    analyze_max_signals: int = _int("SIGNAL_ANALYZE_MAX_SIGNALS", "100")

    # Before publishing: stricter
    publish_content_threshold: float = _float("SIGNAL_PUBLISH_CONTENT_THRESHOLD", "0.6")
    publish_title_threshold: float = _float("SIGNAL_PUBLISH_TITLE_THRESHOLD", "0.7")
    publish_max_source_per_hour: int = _int("SIGNAL_PUBLISH_MAX_SOURCE_PER_HOUR", "1")
    publish_max_signals: int = _int("SIGNAL_PUBLISH_MAX_SIGNALS", "20")

    # Collection tracker windows
    collection_fresh_days: int = _int("SIGNAL_COLLECTION_FRESH_DAYS", "7")
    collection_prune_days: int = _int("SIGNAL_COLLECTION_PRUNE_DAYS", "30")

    # ── GitHub repos to watch (releases/tags + recent commits) ──
    github_token: str = os.environ.get("GITHUB_TOKEN", "")
    github_repos: list[dict] = field(default_factory=lambda: [
        # Core Ethereum clients
        {"repo": "ethereum/go-ethereum", "category": "core-L1", "priority": 10},
        {"repo": "NethermindEth/nethermind", "category": "core-L1", "priority": 9},
        {"repo": "erigontech/erigon", "category": "core-L1", "priority": 8},
        {"repo": "sigp/lighthouse", "category": "core-L1", "priority": 7},
        {"repo": "prysmaticlabs/prysm", "category": "core-L1", "priority": 7},
        {"repo": "ConsenSys/teku", "category": "core-L1", "priority": 7},
        {"repo": "status-im/nimbus-eth2", "category": "core-L1", "priority": 7},
        # L2 frameworks
        {"repo": "ethereum-optimism/optimism", "category": "L2", "priority": 9},
        {"repo": "OffchainLabs/nitro", "category": "L2", "priority": 9},
        {"repo": "matter-labs/zksync-era", "category": "L2", "priority": 9},
        {"repo": "scroll-tech/scroll", "category": "L2", "priority": 8},
        {"repo": "taikoxyz/taiko-mono", "category": "L2", "priority": 8},
        {"repo": "starkware-libs/cairo", "category": "toolchain", "priority": 7},
        # Newer L1s and high-velocity chains
        {"repo": "solana-labs/solana", "category": "alt-L1", "priority": 10},
        {"repo": "aptos-labs/aptos-core", "category": "alt-L1", "priority": 9},
        {"repo": "MystenLabs/sui", "category": "alt-L1", "priority": 9},
        {"repo": "celestiaorg/celestia-app", "category": "modular-DA", "priority": 9},
        {"repo": "celestiaorg/celestia-node", "category": "modular-DA", "priority": 8},
        {"repo": "FuelLabs/fuel-core", "category": "alt-L1", "priority": 8},
        {"repo": "category-labs/monad", "category": "alt-L1", "priority": 7},
        {"repo": "sei-protocol/sei-chain", "category": "alt-L1", "priority": 7},
        # Restaking / DA
        {"repo": "Layr-Labs/eigenda", "category": "restaking/DA", "priority": 8},
        {"repo": "Layr-Labs/eigensdk-go", "category": "restaking/DA", "priority": 6},
    ])

    # ── RSS feeds ──
    rss_feeds: list[dict] = field(default_factory=lambda: [
        # News core
        {"name": "CoinDesk", "url": "https://www.coindesk.com/arc/outboundfeeds/rss/", "category": "news core"},
        {"name": "CoinTelegraph", "url": "https://cointelegraph.com/rss", "category": "news core"},
        {"name": "Decrypt", "url": "https://decrypt.co/feed", "category": "news core"},
        {"name": "The Defiant", "url": "https://thedefiant.io/api/feed", "category": "news core"},
        {"name": "Bitcoin Magazine", "url": "https://bitcoinmagazine.com/feed", "category": "news core"},
        # Airdrops & events
        {"name": "Airdrop Alert", "url": "https://airdropalert.com/feed/", "category": "airdrops & events"},
        # Foundation & ecosystem
        {"name": "Ethereum Blog", "url": "https://blog.ethereum.org/feed.xml", "category": "foundation & ecosystem"},
        {"name": "Solana News", "url": "https://solana.com/news/rss.xml", "category": "foundation & ecosystem"},
        {"name": "Optimism", "url": "https://optimism.mirror.xyz/feed/atom", "category": "foundation & ecosystem"},
        {"name": "Polygon", "url": "https://polygon.technology/blog/rss.xml", "category": "foundation & ecosystem"},
        # Governance forums
        {"name": "Arbitrum Forum", "url": "https://forum.arbitrum.foundation/latest.rss", "category": "governance forums"},
        {"name": "Uniswap Governance", "url": "https://gov.uniswap.org/latest.rss", "category": "governance forums"},
        {"name": "Aave Governance", "url": "https://governance.aave.com/latest.rss", "category": "governance forums"},
    ])

    # ── Telegram channels to read (bot must be a member) ──
    # Reader token defaults to the publishing bot
    telegram_reader_token: str = os.environ.get("TG_READER_TOKEN", os.environ.get("TG_TOKEN", ""))
    telegram_channels: list[str] = field(default_factory=lambda: [
        c.strip() for c in os.environ.get("SIGNAL_TELEGRAM_CHANNELS", "").split(",") if c.strip()
    ])

    def llm_keys(self) -> list[tuple[str, str]]:
        """API keys for the configured LLM provider."""
        var = {
            "gemini": "GEMINI_API_KEY",
            "openai": "OPENAI_API_KEY",
            "openrouter": "OPENROUTER_API_KEY",
            "claude": "ANTHROPIC_API_KEY",
        }.get(self.llm_provider.lower())
        return numbered_keys(var) if var else []


def load_config() -> Config:
    return Config()

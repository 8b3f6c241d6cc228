"""Default configuration parameters for the swap core."""

from dataclasses import dataclass


@dataclass(frozen=True)
class NetworkParams:
    """Chain network the wallet must be connected to."""
    network: str = "signet"
    supported_tokens: tuple[str, ...] = ("SAT", "TEST", "ATOM", "BTC")


@dataclass(frozen=True)
class SwapParams:
    """Swap construction parameters."""
    secret_bytes: int = 32                 # Preimage length
    default_refund_delta: int = 144        # Blocks until initiator may refund
    counter_refund_margin: int = 6         # Taker leg expires this many blocks earlier
    key_namespace: str = "htlc"            # Storage key prefix for lock programs


@dataclass(frozen=True)
class OrderBookParams:
    """Order book index parameters."""
    capacity: int = 100                    # Max intents kept in the index
    seen_ids_capacity: int = 1000          # Remembered message ids for dedup
    topic: str = "bitswap/intents"
    max_future_skew_seconds: int = 300     # Reject intents dated too far ahead


@dataclass(frozen=True)
class BroadcastParams:
    """Publish retry parameters."""
    retry_attempts: int = 3
    retry_delay_seconds: float = 1.0


@dataclass(frozen=True)
class DiscoveryParams:
    """Wallet capability discovery parameters."""
    max_attempts: int = 15
    interval_ms: int = 200


@dataclass(frozen=True)
class StorageParams:
    """Durable storage parameters."""
    secret_db_path: str = "secrets.db"


@dataclass(frozen=True)
class LoggingParams:
    """Logging parameters."""
    level: str = "INFO"
    format_json: bool = False


@dataclass(frozen=True)
class DefaultConfig:
    """Complete default configuration."""
    network: NetworkParams
    swap: SwapParams
    orderbook: OrderBookParams
    broadcast: BroadcastParams
    discovery: DiscoveryParams
    storage: StorageParams
    logging: LoggingParams


def get_default_config() -> DefaultConfig:
    """Get the default configuration instance."""
    return DefaultConfig(
        network=NetworkParams(),
        swap=SwapParams(),
        orderbook=OrderBookParams(),
        broadcast=BroadcastParams(),
        discovery=DiscoveryParams(),
        storage=StorageParams(),
        logging=LoggingParams(),
    )

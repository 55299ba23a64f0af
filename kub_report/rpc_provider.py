import time, random, os
from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware
from kub_report.errors import ConfigError
from kub_report.metrics import RPC_REQUESTS, RPC_ERRORS
from kub_report.logging import log
from kub_report.rpc_context import set_current_rpc

# -----------------------------
# RPC Provider config
# -----------------------------
class RpcProvider:
    def __init__(self, name, base_url, weight, key_env=None):
        self.name = name
        self.base_url = base_url
        self.key_env = key_env
        self.base_weight = weight
        self.current_weight = weight
        self.cooldown_until = 0

    def available(self):
        return time.time() >= self.cooldown_until

    def penalize(self, seconds=15):
        before = self.current_weight
        self.current_weight = max(1, self.current_weight - 1)
        self.cooldown_until = time.time() + seconds

        log.warning(
            "rpc_penalized",
            extra={
                "rpc": self.name,
                "weight_before": before,
                "weight_after": self.current_weight,
                "cooldown_seconds": seconds,
            },
        )

    def reward(self):
        if self.current_weight < self.base_weight:
            self.current_weight += 1

    def build_url(self):
        """
        Build final RPC URL for THIS request
        """
        if not self.key_env:
            return self.base_url # public RPC without key_env

        api_key = os.getenv(self.key_env)
        if not api_key:
            raise ConfigError(
                f"Missing env var for RPC provider {self.name}: {self.key_env}"
            )

        return f"{self.base_url}/{api_key}"


class RpcPool:
    def __init__(self, providers):
        self.providers = providers

    def get_available_providers(self):
        candidates = []
        for p in self.providers:
            if p.available():
                candidates.extend([p] * p.current_weight)

        random.shuffle(candidates)
        return candidates

    @classmethod
    def from_config(cls, rpc_configs: dict, chain: str) -> "RpcPool":
        chain_cfg = rpc_configs.get("chains", {}).get(chain)
        if not chain_cfg:
            raise ConfigError(f"Chain config not found: {chain}")

        providers = []

        for cfg in chain_cfg.get("providers", []):
            if not cfg.get("enabled", True):
                continue

            key_env = cfg.get("api_key_env")
            if isinstance(key_env, list):
                key_env = random.choice(key_env)

            providers.append(
                RpcProvider(
                    name=cfg["name"],
                    base_url=cfg["base_url"],
                    weight=int(cfg.get("weight", 1)),
                    key_env=key_env,
                )
            )

        if not providers:
            raise ConfigError(f"No RPC providers enabled for chain: {chain}")

        for p in providers:
            log.info(
                "rpc_enabled",
                extra={
                    "chain": chain,
                    "rpc": p.name,
                    "key_env": p.key_env,
                    "weight": p.base_weight,
                },
            )
        return cls(providers)


class RpcTemporarilyUnavailable(Exception):
    pass


class Web3Router:
    """
    Runs a web3 call against the pool, failing over between providers.

    One call makes at most one attempt per provider. When the whole round
    fails it raises RpcTemporarilyUnavailable without waiting; callers
    above the transport never retry.
    """

    def __init__(
        self,
        rpc_pool,
        chain: str,
        timeout=10,
        penalize_seconds=15,
    ):
        self.rpc_pool = rpc_pool
        self.chain = chain
        self.timeout = timeout
        self.penalize_seconds = penalize_seconds

        self.last_provider: RpcProvider | None = None

    def _web3(self, provider: RpcProvider) -> Web3:
        w3 = Web3(
            Web3.HTTPProvider(
                provider.build_url(),
                request_kwargs={"timeout": self.timeout},
            )
        )
        w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        return w3

    def call(self, fn):
        last_exc = None

        providers = self.rpc_pool.get_available_providers()
        used = set()

        for provider in providers:
            if provider.name in used:
                continue
            used.add(provider.name)

            self.last_provider = provider
            set_current_rpc(provider.name)

            RPC_REQUESTS.labels(
                chain=self.chain,
                rpc=provider.name,
                key_env=provider.key_env or "public",
            ).inc()

            try:
                result = fn(self._web3(provider))

                provider.reward()
                return result

            except ConfigError:
                raise
            except Exception as e:
                log.warning(
                    "rpc_failover",
                    extra={
                        "chain": self.chain,
                        "error": str(e)[:200],
                    },
                )
                RPC_ERRORS.labels(
                    chain=self.chain,
                    rpc=provider.name,
                    key_env=provider.key_env or "public",
                ).inc()
                provider.penalize(self.penalize_seconds)
                last_exc = e
                continue
            finally:
                set_current_rpc(None)

        # whole round failed
        log.error(
            "rpc_round_failed",
            extra={
                "chain": self.chain,
                "attempted": sorted(used),
            },
        )

        raise RpcTemporarilyUnavailable(
            f"RPC temporarily unavailable for chain={self.chain}"
        ) from last_exc

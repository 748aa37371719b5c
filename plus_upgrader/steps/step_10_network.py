from __future__ import annotations

import logging
from functools import partial
from typing import Any, Dict, List

from ..context import UpgradeCtx
from ..lib.net import LocalPackStrategy, Strategy, WifiAssociationStrategy, bootstrap_network, is_online
from ..state_store import add_warning, record_decision

logger = logging.getLogger(__name__)


class NetworkStep:
    step_id = "10_network"

    def strategies(self, ctx: UpgradeCtx) -> List[Strategy]:
        net = ctx.cfg.section("network")
        chain: List[Strategy] = [
            LocalPackStrategy(
                pack_dir=ctx.kit_path(str(net.get("local_pack_dir") or "kazeta-wifi-pack")),
                services=tuple(net.get("local_pack_services") or ()),
            )
        ]
        # Unattended runs without preseeded credentials can only use the local pack.
        if ctx.interactive or net.get("wifi_ssid"):
            chain.append(
                WifiAssociationStrategy(
                    ssid=net.get("wifi_ssid"),
                    password=net.get("wifi_password"),
                    settle_s=float(net.get("settle_s", 3)),
                    connect_wait_s=float(net.get("connect_wait_s", 5)),
                    scan_limit=int(net.get("scan_limit", 10)),
                )
            )
        return chain

    def run(self, ctx: UpgradeCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        net = ctx.cfg.section("network")
        probe = partial(
            is_online,
            ctx.run,
            address=str(net.get("probe_address") or "8.8.8.8"),
            timeout_s=int(net.get("probe_timeout_s", 3)),
        )

        report = bootstrap_network(ctx, strategies=self.strategies(ctx), probe=probe)

        record_decision(state, "network", {
            "state": report.state.value,
            "strategy": report.strategy,
            "attempted": report.attempted,
        })
        for failure in report.failures:
            add_warning(state, network=failure)
        return state

"""
Referral services package.

Contains modular services for the referral network:
- graph: In-memory adjacency index and traversals
- chain_manager: Sponsor chains and edge creation
- team_manager: Persisted team size recomputation
- query_manager: Cached downline reads
- commission_distributor: Level, sponsor and profit-share credits
"""

from mlm_app.services.referral.chain_manager import (
    ReferralChainManager,
    ReferralResult,
)
from mlm_app.services.referral.commission_distributor import (
    CommissionCredit,
    CommissionDistributor,
    CommissionResult,
)
from mlm_app.services.referral.graph import ReferralGraph, TeamSize
from mlm_app.services.referral.query_manager import (
    DownlineMember,
    ReferralQueryManager,
)
from mlm_app.services.referral.team_manager import (
    ReferralTeamManager,
    load_subtree,
)


__all__ = [
    # Graph
    "ReferralGraph",
    "TeamSize",
    "load_subtree",
    # Managers
    "ReferralChainManager",
    "ReferralQueryManager",
    "ReferralTeamManager",
    "ReferralResult",
    "DownlineMember",
    # Commissions
    "CommissionCredit",
    "CommissionDistributor",
    "CommissionResult",
]

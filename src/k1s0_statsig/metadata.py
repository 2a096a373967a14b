"""statsigMetadata ブロックの生成"""

from __future__ import annotations

import uuid

SDK_TYPE = "py-k1s0-server"
SDK_VERSION = "0.1.0"

# プロセス単位のセッション ID
_SESSION_ID = str(uuid.uuid4())


def get_statsig_metadata() -> dict[str, str]:
    """リモート呼び出しに添付する SDK メタデータを返す。"""
    return {
        "sdkType": SDK_TYPE,
        "sdkVersion": SDK_VERSION,
        "sessionID": _SESSION_ID,
    }

from assethost.lib.asset_url import AssetURLResolver
from assethost.lib.css_rewriter import CssRewriter
from assethost.lib.fingerprint import fingerprint, fingerprint_file
from assethost.lib.host import ClientHints, HostResolver
from assethost.lib.keys import AssetReference, ContentKey, FileHandle, KeyNamespace
from assethost.lib.planner import PublishPlanner, RemoteKeySnapshot, UploadDecision
from assethost.lib.publisher import Publisher, publish

__all__ = [
    "AssetReference",
    "AssetURLResolver",
    "ClientHints",
    "ContentKey",
    "CssRewriter",
    "FileHandle",
    "HostResolver",
    "KeyNamespace",
    "PublishPlanner",
    "Publisher",
    "RemoteKeySnapshot",
    "UploadDecision",
    "fingerprint",
    "fingerprint_file",
    "publish",
]

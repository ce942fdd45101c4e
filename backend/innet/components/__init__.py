"""
Components layer (pure share protocol logic).

No I/O here: payload codec, token locator, contact merge and the shared
contract models. Short-link persistence lives in ``innet.services``.
"""
from innet.components.contact_merge import (MergeResult,  # noqa: F401
                                            merge_contact, normalize_contact)
from innet.components.share_codec import (SHARE_PREFIX,  # noqa: F401
                                          SHARE_VERSION, EncodedShareToken,
                                          TokenParseResult,
                                          decode_share_token,
                                          encode_share_token,
                                          parse_share_token, sanitize_payload)
from innet.components.token_locator import (TokenLocation,  # noqa: F401
                                            extract_alias_slug,
                                            extract_token, locate_token)

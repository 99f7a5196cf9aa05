# SPDX-License-Identifier: Apache-2.0
"""Security helpers."""

from .mask import mask, mask_url, safe_for_log, url_secrets

__all__ = ["mask", "mask_url", "safe_for_log", "url_secrets"]

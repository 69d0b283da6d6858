"""HTTP trigger: cron endpoint and sync run history."""

from shortage_sync.server.app import create_app

__all__ = ["create_app"]

"""Relay server: TUS endpoints, staging, registry and remote stores."""

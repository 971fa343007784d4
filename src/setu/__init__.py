"""
Setu - action lifecycle orchestration for BigFix patch baselines.

Subpackages:
- setu.core: errors, logging, settings, durable store, scheduling
- setu.bigfix: upstream REST client and response parsing
- setu.actions: resolver, synthesizer, action store, lifecycle watcher
- setu.changes: change-ticket validation
- setu.notify: notification channels and templates
- setu.ops: trigger and read operations
- setu.cli: command-line interface
"""

__version__ = "0.1.0"

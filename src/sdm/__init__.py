"""Software delivery machine engine.

This package implements the delivery engine that the Zeus machine assembly
wires together:
- Push and channel-link event intake from GitHub webhooks
- Push tests and goal contribution rules
- Goal sets, goal planning and sequential goal execution
- Built-in goals: code inspection, autofix, push impact, build
- Generator commands that materialize new repositories from seeds
- Extension packs (Spring support, code metrics)
- GitHub commit status reporting and observability events
"""

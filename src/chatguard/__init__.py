"""
chatguard - client-side moderation core for a realtime group chat

Users post short messages to a shared append-only log and see everyone's
messages live. chatguard is the library a UI shell embeds to enforce the
client-side anti-abuse rules and to keep the rendered message list in order.

Core Components:

- **Moderation Engine**: Runs every submission through emptiness and length
  checks, the cooldown and spam-escalation gate, the flood ceiling and the
  profanity filter
- **Log Reconciliation**: Folds raw store snapshots into a stable,
  time-ordered message list and reports structural anomalies
- **Chat Session**: Wires the engine to the realtime store, device-local
  storage and the clock (username persistence, live subscriptions, spam
  reports, connection probing)

All rules are advisory: a modified client can bypass them.

Usage:
    from chatguard.services.chat_session import ChatSession
    session = ChatSession(log, kv, clock, default_username="alice")
    session.start()
"""

"""Real-time infrastructure — viewer WebSockets.

Learn: Messages flow one way, server → viewers:
1. Operators trigger events over HTTP; the scheduler flips components.
2. Both hand a message to the Broadcaster with a room id (campaign id).
3. The Broadcaster sends it to every open socket the ConnectionRegistry
   holds for that room.

Room 0 is the legacy room for viewers connected to plain ``/ws``.
"""

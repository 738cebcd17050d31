from conversation_sync.conversation_sync import ConversationSync

__all__ = ["ConversationSync"]

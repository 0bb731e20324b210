from shareit_functions.messaging import PushMessage


class RecordingSender:
    def __init__(self, fail_tokens: frozenset[str] = frozenset()):
        self.sent: list[PushMessage] = []
        self.fail_tokens = fail_tokens

    def send(self, message: PushMessage) -> str:
        if message.token in self.fail_tokens:
            raise RuntimeError("registration token is not valid")
        self.sent.append(message)
        return f"projects/shareit/messages/{len(self.sent)}"

"""In-memory stand-ins for the Google Docs and Drive API resources."""
from types import SimpleNamespace

from googleapiclient.errors import HttpError


def http_error(status=403, reason="Forbidden"):
    return HttpError(SimpleNamespace(status=status, reason=reason), b'{"error": {"message": "denied"}}')


class FakeCall:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error

    def execute(self):
        if self.error:
            raise self.error
        return self.result


class FakeDocuments:
    """documents() resource; get() walks through the given content snapshots."""

    def __init__(self, snapshots, update_error=None):
        self.snapshots = list(snapshots)
        self.batches = []
        self.update_error = update_error

    def get(self, documentId):
        content = self.snapshots.pop(0) if len(self.snapshots) > 1 else self.snapshots[0]
        return FakeCall({"documentId": documentId, "body": {"content": content}})

    def batchUpdate(self, documentId, body):
        self.batches.append(body["requests"])
        return FakeCall({"replies": []}, error=self.update_error)


class FakeDocs:
    def __init__(self, *snapshots, update_error=None):
        self._documents = FakeDocuments(snapshots or [[]], update_error=update_error)

    def documents(self):
        return self._documents


class FakeFiles:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def _call(self, name, result, **kwargs):
        self.calls.append((name, kwargs))
        return FakeCall(result, error=self.error)

    def copy(self, **kwargs):
        return self._call("copy", {"id": "doc123", "webViewLink": "https://docs.google.com/document/d/doc123/edit"}, **kwargs)

    def get(self, **kwargs):
        return self._call("get", {"parents": ["root1", "root2"]}, **kwargs)

    def update(self, **kwargs):
        return self._call("update", {"id": kwargs["fileId"]}, **kwargs)

    def export(self, **kwargs):
        return self._call("export", b"%PDF-1.4 fake", **kwargs)

    def create(self, **kwargs):
        return self._call("create", {"id": "pdf123", "webViewLink": "https://drive.google.com/file/d/pdf123/view"}, **kwargs)


class FakeDrive:
    def __init__(self, error=None):
        self._files = FakeFiles(error)

    def files(self):
        return self._files


def paragraph(start, text):
    end = start + len(text)
    return {
        "startIndex": start,
        "endIndex": end,
        "paragraph": {"elements": [{"startIndex": start, "endIndex": end, "textRun": {"content": text}}]},
    }

"""Fake boto3 clients for controller and result-stream tests."""

import io
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError
from botocore.response import StreamingBody


def client_error(code: str, message: str = "", operation: str = "StartQueryExecution") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def throttled(operation: str = "StartQueryExecution") -> ClientError:
    return client_error("TooManyRequestsException", "Rate exceeded", operation)


class FakeAthena:
    """Stand-in for boto3.client("athena").

    Each *_effects list is consumed one entry per call; an exception entry is
    raised, anything else is returned (or used as the state for get_query_execution).
    """

    def __init__(
        self,
        start_effects: Optional[List[Any]] = None,
        get_effects: Optional[List[Any]] = None,
        stop_effects: Optional[List[Any]] = None,
        output_location: Optional[str] = "s3://results-bucket/athena/qid-1.csv",
    ):
        self.start_effects = list(start_effects or [])
        self.get_effects = list(get_effects or [])
        self.stop_effects = list(stop_effects or [])
        self.output_location = output_location
        self.start_calls: List[Dict[str, Any]] = []
        self.get_calls: List[str] = []
        self.stop_calls: List[str] = []

    @staticmethod
    def _next(effects: List[Any], default: Any) -> Any:
        effect = effects.pop(0) if effects else default
        if isinstance(effect, BaseException):
            raise effect
        return effect

    def start_query_execution(self, **params):
        self.start_calls.append(params)
        qid = self._next(self.start_effects, "qid-1")
        return {"QueryExecutionId": qid}

    def get_query_execution(self, QueryExecutionId: str):
        self.get_calls.append(QueryExecutionId)
        effect = self._next(self.get_effects, "SUCCEEDED")
        if isinstance(effect, dict):
            status = effect
        else:
            status = {"State": effect}
        payload: Dict[str, Any] = {"QueryExecutionId": QueryExecutionId, "Status": status}
        if self.output_location:
            payload["ResultConfiguration"] = {"OutputLocation": self.output_location}
        return {"QueryExecution": payload}

    def stop_query_execution(self, QueryExecutionId: str):
        self.stop_calls.append(QueryExecutionId)
        return self._next(self.stop_effects, {})


class FakeS3:
    def __init__(self, objects: Optional[Dict[tuple, bytes]] = None, error: Optional[BaseException] = None):
        self.objects = dict(objects or {})
        self.error = error
        self.calls: List[tuple] = []

    def get_object(self, Bucket: str, Key: str):
        self.calls.append((Bucket, Key))
        if self.error is not None:
            raise self.error
        if (Bucket, Key) not in self.objects:
            raise client_error("NoSuchKey", "The specified key does not exist.", "GetObject")
        data = self.objects[(Bucket, Key)]
        return {"Body": StreamingBody(io.BytesIO(data), len(data))}

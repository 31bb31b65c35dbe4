import datetime
import json
from io import BytesIO
from typing import Dict, List

import httpx
import pytest
from PIL import Image

from backend.model import MockupSpec
from backend.prediction_client import PredictionClient

API_URL = "https://api.replicate.test/v1"
TOKEN = "test-token"
FIXED_DAY = datetime.date(2024, 5, 17)


def make_png(width: int = 64, height: int = 48, color=(200, 30, 30)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


class ReplicateStub:
    """
    httpx.MockTransport handler imitating the predictions API and an image CDN.

    The outcome of a prediction is chosen by a keyword in its prompt:
    FAIL -> failed, CANCEL -> canceled, NOOUT -> succeeded without output,
    BROKEN -> output URL answers 404, REJECT -> create answers 422.
    Anything else succeeds after `steps` processing observations.
    """

    def __init__(self, steps: int = 1, image: bytes = b""):
        self.steps = steps
        self.image = image or make_png()
        self.predictions: Dict[str, dict] = {}
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.host == "img.test":
            if request.url.path.startswith("/missing"):
                return httpx.Response(404, text="not found")
            return httpx.Response(200, content=self.image, headers={"content-type": "image/png"})

        if request.headers.get("authorization") != f"Token {TOKEN}":
            return httpx.Response(401, json={"detail": "Invalid token."})

        if request.method == "POST" and request.url.path == "/v1/predictions":
            body = json.loads(request.content)
            prompt = body["input"]["prompt"]
            if "REJECT" in prompt:
                return httpx.Response(422, json={"detail": "Invalid input"})
            pid = f"p{len(self.predictions) + 1}"
            self.predictions[pid] = {"prompt": prompt, "version": body["version"], "polls": 0}
            return httpx.Response(201, json={"id": pid, "status": "starting", "output": None})

        if request.method == "GET" and request.url.path.startswith("/v1/predictions/"):
            pid = request.url.path.rsplit("/", 1)[1]
            p = self.predictions.get(pid)
            if p is None:
                return httpx.Response(404, json={"detail": "Not found."})
            p["polls"] += 1
            if p["polls"] <= self.steps:
                return httpx.Response(200, json={"id": pid, "status": "processing", "logs": f"step {p['polls']}"})
            return httpx.Response(200, json=self._terminal(pid, p["prompt"]))

        return httpx.Response(404)

    @staticmethod
    def _terminal(pid: str, prompt: str) -> dict:
        if "FAIL" in prompt:
            return {"id": pid, "status": "failed", "error": "NSFW content detected"}
        if "CANCEL" in prompt:
            return {"id": pid, "status": "canceled"}
        if "NOOUT" in prompt:
            return {"id": pid, "status": "succeeded", "output": None}
        if "BROKEN" in prompt:
            return {"id": pid, "status": "succeeded", "output": ["https://img.test/missing.png"]}
        return {
            "id": pid,
            "status": "succeeded",
            "output": [f"https://img.test/{pid}.png"],
            "logs": "done",
            "metrics": {"predict_time": 1.5},
        }


def build_http(stub: ReplicateStub) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(stub.handler))


def build_client(http: httpx.AsyncClient, token: str = TOKEN) -> PredictionClient:
    return PredictionClient(api_token=token, model_version="v-hash", base_url=API_URL, http=http)


@pytest.fixture
def stub():
    return ReplicateStub()


@pytest.fixture
def specs():
    return [
        MockupSpec(type="Framed Wall", prompt="A framed print of {artwork_subject}", size=(40, 30)),
        MockupSpec(type="Coffee Mug", prompt="A mug showing {artwork_subject}", size=(32, 32)),
        MockupSpec(type="Broken Poster", prompt="FAIL poster of {artwork_subject}", size=(30, 40)),
    ]

import asyncio
import json

import httpx
import pytest

from app.core.errors import IntegrityViolation, InvalidRequest, ProtocolError, UpstreamUnavailable
from app.core.monitor import Monitor
from app.db.asset_store import FileSystemAssetStore
from app.models.negotiation import NegotiationRequest, NegotiationResponse
from app.models.transfer import TransferState
from app.services.hashing_service import HashVerifier
from app.services.ledger_service import TransferLedger
from app.services.negotiation_service import NO_COMMON_TRUSTEE, TrustNegotiator
from app.services.routing_service import RoutingTable
from app.services.transfers_service import TransferOrchestrator
from app.services.transforms_service import TransformRegistry
from app.services.whitelist_service import TrustedParticipantsWhitelist
from conftest import Recorder, participant

SOURCE = participant("provider")
SINK = participant("consumer")
TRUSTEE = participant("trustee")
OTHER_TRUSTEE = participant("other-trustee")


def make_negotiator(settings, recorder, trusted):
    http = recorder.client()
    monitor = Monitor()
    orchestrator = TransferOrchestrator(
        FileSystemAssetStore(settings.asset_store_dir), RoutingTable(), TransferLedger(), TransformRegistry(),
        http, monitor, settings,
    )
    return TrustNegotiator(TrustedParticipantsWhitelist(trusted), HashVerifier(), orchestrator, http, monitor, settings)


def request_for(trusted, assets=("a1",), fingerprint=None):
    return NegotiationRequest(
        data_source=SOURCE,
        data_sink=SINK,
        trusted_participants=list(trusted),
        assets=list(assets),
        fingerprint=fingerprint or HashVerifier().fingerprint(trusted),
    )


def test_receiver_picks_first_common_trustee_in_its_own_order(settings, recorder):
    async def scenario():
        negotiator = make_negotiator(settings, recorder, [OTHER_TRUSTEE, TRUSTEE])
        response = await negotiator.receive_negotiation(request_for([TRUSTEE, OTHER_TRUSTEE]))
        await negotiator.drain()
        return response

    response = asyncio.run(scenario())

    assert response.chosen_trustee == OTHER_TRUSTEE
    relayed = recorder.json_bodies("POST", f"{OTHER_TRUSTEE.url}/notify")
    assert relayed[0]["senderRole"] == "provider"
    assert relayed[0]["assets"] == ["a1"]
    assert relayed[0]["dataSource"]["url"] == SOURCE.url


def test_receiver_ignores_ids_when_matching(settings, recorder):
    offered = [TRUSTEE.model_copy(update={"id": "did:web:trustee"})]

    async def scenario():
        negotiator = make_negotiator(settings, recorder, [TRUSTEE])
        response = await negotiator.receive_negotiation(request_for(offered))
        await negotiator.drain()
        return response

    assert asyncio.run(scenario()).chosen_trustee == TRUSTEE


def test_tampered_list_is_rejected_without_relay(settings, recorder):
    fingerprint = HashVerifier().fingerprint([TRUSTEE])

    async def scenario():
        negotiator = make_negotiator(settings, recorder, [TRUSTEE, OTHER_TRUSTEE])
        with pytest.raises(IntegrityViolation):
            await negotiator.receive_negotiation(request_for([TRUSTEE, OTHER_TRUSTEE], fingerprint=fingerprint))
        await negotiator.drain()

    asyncio.run(scenario())
    assert recorder.requests == []


def test_empty_intersection_triggers_nothing(settings, recorder):
    async def scenario():
        negotiator = make_negotiator(settings, recorder, [OTHER_TRUSTEE])
        response = await negotiator.receive_negotiation(request_for([TRUSTEE]))
        await negotiator.drain()
        return response

    response = asyncio.run(scenario())

    assert response.chosen_trustee is None
    assert response.message == NO_COMMON_TRUSTEE
    assert recorder.requests == []


def test_unreachable_trustee_does_not_fail_the_answer(settings):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    recorder = Recorder(handler)

    async def scenario():
        negotiator = make_negotiator(settings, recorder, [TRUSTEE])
        response = await negotiator.receive_negotiation(request_for([TRUSTEE]))
        await negotiator.drain()
        return negotiator, response

    negotiator, response = asyncio.run(scenario())

    assert response.chosen_trustee == TRUSTEE
    assert any("Failed to send notification" in m for m in negotiator.monitor.messages("WARNING"))


def answering(chosen, status=200, body=None):
    def handler(request):
        if str(request.url) == f"{SOURCE.url}/receive-negotiation":
            if body is not None:
                return httpx.Response(status, **body)
            sent = json.loads(request.content)
            response = NegotiationResponse(
                data_source=SOURCE, data_sink=SINK, chosen_trustee=chosen, assets=sent["assets"]
            )
            return httpx.Response(status, json=response.model_dump(by_alias=True, mode="json"))
        return httpx.Response(200, json={})
    return handler


def test_initiator_relays_and_pushes_held_assets(settings):
    recorder = Recorder(answering(TRUSTEE))

    async def scenario():
        negotiator = make_negotiator(settings, recorder, [TRUSTEE])
        negotiator.orchestrator.store.save("a1", b'{"v": 1}')
        outcome = await negotiator.negotiate(SOURCE, SINK, ["a1", "a2"])
        for _ in range(1000):
            if negotiator.orchestrator.status(outcome.transfer_ids[0]) is not TransferState.RUNNING:
                break
            await asyncio.sleep(0)
        return outcome

    outcome = asyncio.run(scenario())

    sent = recorder.json_bodies("POST", f"{SOURCE.url}/receive-negotiation")[0]
    assert sent["trustedParticipants"][0]["url"] == TRUSTEE.url
    assert sent["fingerprint"] == HashVerifier().fingerprint([TRUSTEE])

    assert outcome.trustee == TRUSTEE
    assert outcome.raw["chosenTrustee"]["name"] == "trustee"
    assert len(outcome.transfer_ids) == 1

    relayed = recorder.json_bodies("POST", f"{TRUSTEE.url}/notify")
    assert relayed[0]["senderRole"] == "consumer"
    assert relayed[0]["dataSink"]["url"] == SINK.url


def test_initiator_without_common_trustee_stops(settings):
    recorder = Recorder(answering(None))

    async def scenario():
        negotiator = make_negotiator(settings, recorder, [TRUSTEE])
        negotiator.orchestrator.store.save("a1", b"{}")
        return await negotiator.negotiate(SOURCE, SINK, ["a1"])

    outcome = asyncio.run(scenario())

    assert not outcome.has_trustee
    assert outcome.transfer_ids == []
    assert len(recorder.requests) == 1


def test_initiator_requires_both_parties(settings, recorder):
    async def scenario():
        negotiator = make_negotiator(settings, recorder, [TRUSTEE])
        with pytest.raises(InvalidRequest):
            await negotiator.negotiate(None, SINK, ["a1"])
        with pytest.raises(InvalidRequest):
            await negotiator.negotiate(SOURCE, SINK.model_copy(update={"url": ""}), ["a1"])

    asyncio.run(scenario())
    assert recorder.requests == []


@pytest.mark.parametrize("body", [
    {"json": {"error": "Hash mismatch: possible data tampering detected."}},
    {"content": b"<html>gateway</html>"},
    {"json": {"message": "missing parties"}},
])
def test_initiator_rejects_unusable_answers(settings, body):
    recorder = Recorder(answering(TRUSTEE, status=400, body=body))

    async def scenario():
        negotiator = make_negotiator(settings, recorder, [TRUSTEE])
        with pytest.raises(ProtocolError):
            await negotiator.negotiate(SOURCE, SINK, ["a1"])

    asyncio.run(scenario())
    assert len(recorder.requests) == 1


def test_initiator_reports_unreachable_counterparty(settings):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async def scenario():
        negotiator = make_negotiator(settings, Recorder(handler), [TRUSTEE])
        with pytest.raises(UpstreamUnavailable):
            await negotiator.negotiate(SOURCE, SINK, ["a1"])

    asyncio.run(scenario())

"""Entry builder: the state machine that produces a Codex entry.

Phases (linear, early exit on failure)::

    START -> REASSEMBLE -> UPLOAD_PAYLOAD -> COMPUTE_INTEGRITY -> ANCHOR
          -> ASSEMBLE_UNSIGNED -> SIGN -> UPLOAD_ENTRY -> SELF_REFERENCE
          -> VALIDATE -> DONE

Optional phases that do not apply are recorded as skipped.  Uploads to
credentialed storage (Drive) only happen in external anchor mode with a
credential present; credential-free storage (a local directory) is written
whenever it is configured.  Every
credentialed call (payload upload, external anchor, entry upload and
re-upload) goes through ``with_credential_refresh``: one refresh and one
retry, then the failure is terminal for the run.

A failure in any phase stops the run.  The result then carries the phase
and error kind (``"anchor/AnchorError"``) and no entry.  Uploads that
already happened are not rolled back.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable, Mapping
from typing import TypeVar

import httpx

from codexforge.anchors import AnchorProvider, AnchorRequest, DriveAnchor, MockAnchor
from codexforge.config import ForgeConfig
from codexforge.core.chunks import assemble_chunks
from codexforge.core.classify import TextClassifier, classify_artifact, mime_type_for
from codexforge.core.credentials import (
    CredentialStore,
    FileCredentialStore,
    Refresher,
    with_credential_refresh,
)
from codexforge.core.errors import AnchorError, CodexError, CredentialError, ValidationError
from codexforge.core.integrity import integrity_proof
from codexforge.core.phase_machine import PhaseMachine
from codexforge.core.signer import EntrySigner, rewrite_location, sign_entry
from codexforge.core.validator import validate
from codexforge.models.build import (
    AnchorKind,
    BuildPhase,
    BuildRequest,
    BuildResult,
    StoredObject,
)
from codexforge.models.entry import CodexEntry, Encryption, Identity, Storage
from codexforge.storage import BlobStorage, DriveStorage, LocalStorage

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EntryBuilder:
    """Builds, signs and validates Codex entries.

    Parameters
    ----------
    credentials:
        Store holding the bearer token for external services.
    refresher:
        Called once when a token is rejected; returns a fresh token.
    storage:
        Where payloads and entries are uploaded.  ``None`` keeps the
        artifact with the caller and records its filename as location.
    anchors:
        Providers by kind.  A mock provider is always available.
    signer:
        Entry signer; ephemeral keys when omitted.
    classifier:
        Optional text classifier for identity subject/process.
    """

    def __init__(
        self,
        *,
        credentials: CredentialStore | None = None,
        refresher: Refresher | None = None,
        storage: BlobStorage | None = None,
        anchors: Mapping[AnchorKind, AnchorProvider] | None = None,
        signer: EntrySigner | None = None,
        classifier: TextClassifier | None = None,
    ) -> None:
        self._credentials = credentials
        self._refresher = refresher
        self._storage = storage
        self._anchors: dict[AnchorKind, AnchorProvider] = {AnchorKind.MOCK: MockAnchor()}
        self._anchors.update(anchors or {})
        self._signer = signer or EntrySigner()
        self._classifier = classifier
        self._closers: list[Callable[[], Awaitable[None]]] = []

    @classmethod
    def from_config(
        cls,
        config: ForgeConfig,
        *,
        client: httpx.AsyncClient | None = None,
        credentials: CredentialStore | None = None,
        refresher: Refresher | None = None,
        classifier: TextClassifier | None = None,
    ) -> EntryBuilder:
        """Wire a builder from settings.

        A Drive client is created for Google anchoring and Drive storage; it
        is closed by :meth:`aclose`.
        """
        drive = DriveStorage(
            client,
            api_base=config.drive_api_base,
            upload_base=config.drive_upload_base,
            timeout=config.http_timeout_seconds,
        )
        storage: BlobStorage | None = None
        if config.storage_backend == "gdrive":
            storage = drive
        elif config.storage_backend == "local":
            storage = LocalStorage(config.local_storage_path)

        signer = (
            EntrySigner.from_file(config.signing_key_path)
            if config.signing_key_path
            else EntrySigner()
        )
        builder = cls(
            credentials=credentials or FileCredentialStore(config.token_path),
            refresher=refresher,
            storage=storage,
            anchors={AnchorKind.GOOGLE: DriveAnchor(drive)},
            signer=signer,
            classifier=classifier,
        )
        builder._closers.append(drive.aclose)
        return builder

    async def aclose(self) -> None:
        for close in self._closers:
            await close()
        self._closers.clear()

    async def __aenter__(self) -> EntryBuilder:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Credential plumbing
    # ------------------------------------------------------------------

    async def _current_token(self) -> str | None:
        if self._credentials is None:
            return None
        return await self._credentials.get()

    async def _authorized(self, op: Callable[[str], Awaitable[T]]) -> T:
        if self._credentials is None:
            raise CredentialError("No credential store configured")
        return await with_credential_refresh(op, self._credentials, self._refresher)

    async def _store(
        self, storage: BlobStorage, op: Callable[[BlobStorage, str | None], Awaitable[T]]
    ) -> T:
        if storage.requires_credentials:
            return await self._authorized(lambda t: op(storage, t))
        return await op(storage, None)

    def _upload_target(
        self, kind: AnchorKind, token: str | None
    ) -> tuple[BlobStorage | None, str]:
        """Return the storage uploads go to this run, or ``None`` and why not.

        Credentialed storage is only written in external anchor mode with a
        credential present.  Credential-free storage is always written.
        """
        if self._storage is None:
            return None, "no storage configured"
        if not self._storage.requires_credentials:
            return self._storage, ""
        provider = self._anchors.get(kind)
        if provider is None or not provider.requires_credentials:
            return None, f"{kind.value} anchor mode is not external"
        if not token:
            return None, "no credential"
        return self._storage, ""

    def _select_anchor(self, kind: AnchorKind, token: str | None) -> AnchorProvider:
        provider = self._anchors.get(kind)
        if provider is None:
            raise AnchorError(f"No anchor provider configured for {kind.value!r}")
        if provider.requires_credentials and not token:
            logger.warning(
                "No credential for %s anchoring; falling back to mock anchor", kind.value
            )
            return self._anchors[AnchorKind.MOCK]
        return provider

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def create_entry(self, request: BuildRequest) -> BuildResult:
        """Run the full pipeline for one artifact.

        Never raises for pipeline failures: they come back as
        ``BuildResult(ok=False, ...)``.  Programming errors still raise.
        """
        entry_id = str(uuid.uuid4())
        machine = PhaseMachine(entry_id)
        phase = BuildPhase.REASSEMBLE
        payload_info: StoredObject | None = None
        entry_info: StoredObject | None = None
        self_ref_info: StoredObject | None = None

        try:
            # Reassemble chunked input in declared index order
            if request.chunks is not None:
                data = assemble_chunks(request.chunks, request.total_chunks)
                machine.complete(phase, f"{len(request.chunks)} chunk(s), {len(data)} bytes")
            else:
                data = request.data or b""
                machine.skip(phase, "single buffer")

            # UPLOAD_PAYLOAD
            phase = BuildPhase.UPLOAD_PAYLOAD
            token = await self._current_token()
            mime_type = request.mime_type or mime_type_for(request.filename)
            anchor_kind = AnchorKind(request.anchor)
            storage, skip_reason = self._upload_target(anchor_kind, token)
            if request.store_payload and storage is not None:
                payload_info = await self._store(
                    storage, lambda s, t: s.upload(data, request.filename, mime_type, t)
                )
                machine.complete(phase, payload_info.location)
            else:
                machine.skip(phase, skip_reason if request.store_payload else "not requested")

            # COMPUTE_INTEGRITY
            phase = BuildPhase.COMPUTE_INTEGRITY
            proof = integrity_proof(data)
            classification = await classify_artifact(
                data,
                request.filename,
                mime_type=mime_type,
                classifier=self._classifier,
            )
            machine.complete(phase, proof)

            # ANCHOR
            phase = BuildPhase.ANCHOR
            provider = self._select_anchor(anchor_kind, token)
            anchor_request = AnchorRequest(entry_id=entry_id, integrity_proof=proof)
            if provider.requires_credentials:
                anchor = await self._authorized(lambda t: provider.create(anchor_request, t))
            else:
                anchor = await provider.create(anchor_request, None)
            machine.complete(phase, f"{anchor.chain} {anchor.tx}")

            # ASSEMBLE_UNSIGNED
            phase = BuildPhase.ASSEMBLE_UNSIGNED
            if payload_info is not None and storage is not None:
                location, protocol = payload_info.location, storage.protocol
            else:
                location, protocol = request.filename, request.storage_protocol
            entry = CodexEntry(
                id=entry_id,
                storage=Storage(
                    protocol=protocol,
                    location=location,
                    integrity_proof=proof,
                    encryption=(
                        Encryption(alg=request.encryption_alg)
                        if request.encryption_alg
                        else None
                    ),
                ),
                identity=Identity(
                    org=request.org,
                    process=classification.process,
                    artifact=request.filename,
                    subject=classification.subject,
                ),
                anchor=anchor,
                previous_id=request.previous_id,
            )
            machine.complete(phase)

            # SIGN
            phase = BuildPhase.SIGN
            entry = sign_entry(entry, self._signer)
            machine.complete(phase, f"{len(entry.signatures)} signature(s)")

            # UPLOAD_ENTRY
            phase = BuildPhase.UPLOAD_ENTRY
            if request.store_entry and storage is not None:
                entry_bytes = entry.to_json(indent=2).encode("utf-8")
                entry_info = await self._store(
                    storage,
                    lambda s, t: s.upload(
                        entry_bytes, f"{entry_id}.codex.json", "application/json", t
                    ),
                )
                machine.complete(phase, entry_info.location)
            else:
                machine.skip(phase, skip_reason if request.store_entry else "not requested")

            # SELF_REFERENCE: rewrite -> reset signatures -> sign -> re-upload
            phase = BuildPhase.SELF_REFERENCE
            if request.self_reference and storage is not None and entry_info is not None:
                entry = rewrite_location(entry, entry_info.location, self._signer)
                rewritten = entry.to_json(indent=2).encode("utf-8")
                target_id = entry_info.id
                self_ref_info = await self._store(
                    storage, lambda s, t: s.update(target_id, rewritten, t)
                )
                machine.complete(phase, self_ref_info.location)
            else:
                machine.skip(
                    phase,
                    "entry not uploaded" if request.self_reference else "not requested",
                )

            # VALIDATE
            phase = BuildPhase.VALIDATE
            validate(entry).raise_for_errors(phase=phase.value)
            machine.complete(phase)

        except CodexError as exc:
            exc.with_phase(phase.value)
            machine.fail(phase, str(exc))
            details: str | list[str] = (
                exc.errors if isinstance(exc, ValidationError) else _describe_cause(exc)
            )
            return BuildResult(
                ok=False,
                error=f"{exc.phase}/{exc.kind}",
                details=details,
                failed_phase=phase,
                phases=machine.records,
            )
        except Exception as exc:
            machine.fail(phase, f"unexpected {type(exc).__name__}: {exc}")
            raise

        machine.complete(BuildPhase.DONE)
        return BuildResult(
            ok=True,
            entry=entry,
            payload_info=payload_info,
            entry_info=entry_info,
            self_ref_info=self_ref_info,
            phases=machine.records,
        )


def _describe_cause(exc: CodexError) -> str:
    if exc.cause is not None and str(exc.cause) not in str(exc):
        return f"{exc} (caused by {type(exc.cause).__name__}: {exc.cause})"
    return str(exc)

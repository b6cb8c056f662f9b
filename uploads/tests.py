"""
Tests for the upload pipeline
"""
import asyncio
import random

from django.test import SimpleTestCase, override_settings

from uploads.classifier import UploadValidator, classify, sniff_mime_type
from uploads.conf import DEFAULT_ALLOWED_TYPES, UploadSettings, get_upload_settings
from uploads.engine import IncrementalResponse, OperationRequest, SingleResponse, StrawberryEngine
from uploads.errors import (
    DisallowedType, EngineExecutionFailure, FileReadTimeout, FileRejected,
    InternalError, InvalidFile, MalformedRequest, PathConflict,
)
from uploads.graphql.schema import schema
from uploads.orchestrator import UploadOrchestrator, process_upload_request
from uploads.parts import MultipartParts, RawFilePart
from uploads.paths import MAX_ARRAY_PADDING, NodeKind, graft, node_kind
from uploads.pending import PendingUpload, ResolvedFile, UploadState
from uploads.responses import WireResponse, adapt_engine_response

PNG_BYTES = b'\x89PNG\r\n\x1a\n' + b'\x00\x00\x00\rIHDR' + b'\x00' * 16
PDF_BYTES = b'%PDF-1.4\n%\xe2\xe3\xcf\xd3\n1 0 obj\n'
OPAQUE_BYTES = b'\x01\x02\x00\x03' + random.Random(0).randbytes(1020)
NOTE_BYTES = b'hello note'

ALLOWED_TYPES = ['image/jpeg', 'image/png', 'text/plain']


def make_resolved_file(content=NOTE_BYTES):
    return ResolvedFile(
        encoding='binary',
        file_name='note.txt',
        file_size=len(content),
        mime_type='text/plain',
        content=content,
    )


class RecordingEngine:
    """Engine double that records every request it receives"""

    def __init__(self, response=None, error=None):
        self.requests = []
        self.response = response or SingleResponse(single_result={"data": {"ok": True}})
        self.error = error

    async def execute_operation(self, request, context_value=None):
        self.requests.append((request, context_value))
        if self.error is not None:
            raise self.error
        return self.response


# ==================================================
# PENDING UPLOAD
# ==================================================

class PendingUploadTest(SimpleTestCase):
    """Test the single-resolution placeholder"""

    async def test_resolve_then_await(self):
        upload = PendingUpload()
        resolved = make_resolved_file()

        self.assertTrue(upload.resolve(resolved))
        self.assertEqual(upload.state, UploadState.RESOLVED)
        self.assertIs(await upload, resolved)

    async def test_reject_then_await_raises(self):
        upload = PendingUpload()
        self.assertTrue(upload.reject(FileRejected("bad file")))
        self.assertEqual(upload.state, UploadState.REJECTED)

        with self.assertRaisesMessage(FileRejected, "bad file"):
            await upload

    def test_first_settlement_wins(self):
        """Settling an already settled cell is a no-op"""
        resolved = make_resolved_file()

        upload = PendingUpload()
        upload.resolve(resolved)
        self.assertFalse(upload.reject(FileRejected("late")))
        self.assertFalse(upload.resolve(make_resolved_file(b'other')))
        self.assertIs(upload.file, resolved)
        self.assertIsNone(upload.error)

        rejected = PendingUpload()
        rejected.reject(FileRejected("first"))
        self.assertFalse(rejected.resolve(resolved))
        self.assertEqual(rejected.state, UploadState.REJECTED)
        self.assertIsNone(rejected.file)

    async def test_await_suspends_until_settled(self):
        upload = PendingUpload()
        waiter = asyncio.ensure_future(upload.wait())

        await asyncio.sleep(0)
        self.assertFalse(waiter.done())

        resolved = make_resolved_file()
        upload.resolve(resolved)
        self.assertIs(await waiter, resolved)

    def test_unobserved_rejection_is_harmless(self):
        upload = PendingUpload()
        upload.reject(FileRejected("nobody reads this"))
        self.assertTrue(upload.is_settled)

    def test_resolved_file_is_replayable(self):
        resolved = make_resolved_file()

        first = resolved.open()
        self.assertEqual(first.read(), NOTE_BYTES)
        self.assertEqual(resolved.open().read(), NOTE_BYTES)
        self.assertEqual(first.read(), b'')


# ==================================================
# PATH GRAFTING
# ==================================================

class GraftTest(SimpleTestCase):
    """Test dot-path grafting"""

    def test_graft_arbitrary_depth(self):
        document = {}
        graft(document, 'a.b.0.c', 'x')
        self.assertEqual(document, {'a': {'b': [{'c': 'x'}]}})

    def test_graft_is_idempotent(self):
        once = {'variables': {'files': [None, None]}}
        twice = {'variables': {'files': [None, None]}}

        graft(once, 'variables.files.1', 'x')
        graft(twice, 'variables.files.1', 'x')
        graft(twice, 'variables.files.1', 'x')

        self.assertEqual(once, twice)

    def test_graft_replaces_null_placeholder(self):
        document = {'query': 'q', 'variables': {'f': None}}
        graft(document, 'variables.f', 'file')
        self.assertEqual(document['variables'], {'f': 'file'})
        self.assertEqual(document['query'], 'q')

    def test_graft_pads_arrays(self):
        document = {'variables': {'files': []}}
        graft(document, 'variables.files.2', 'x')
        self.assertEqual(document['variables']['files'], [None, None, 'x'])

    def test_graft_keeps_sibling_values(self):
        document = {'variables': {'input': {'title': 'Report', 'attachment': None}}}
        graft(document, 'variables.input.attachment', 'file')
        self.assertEqual(document['variables']['input'], {'title': 'Report', 'attachment': 'file'})

    def test_conflict_overwrites_by_default(self):
        document = {'variables': {'files': {'first': 'kept?'}}}
        graft(document, 'variables.files.0', 'x')
        self.assertEqual(document['variables']['files'], ['x'])

        document = {'variables': {'input': ['a', 'b']}}
        graft(document, 'variables.input.file', 'x')
        self.assertEqual(document['variables']['input'], {'file': 'x'})

    def test_conflict_raises_in_strict_mode(self):
        document = {'variables': {'files': {'first': 'kept'}}}
        with self.assertRaises(PathConflict):
            graft(document, 'variables.files.0', 'x', strict=True)
        self.assertEqual(document['variables']['files'], {'first': 'kept'})

    def test_strict_mode_fills_null_slots(self):
        document = {'variables': {'files': None}}
        graft(document, 'variables.files.0', 'x', strict=True)
        self.assertEqual(document['variables']['files'], ['x'])

    def test_invalid_paths(self):
        with self.assertRaises(MalformedRequest):
            graft({}, '', 'x')
        with self.assertRaises(MalformedRequest):
            graft({}, 'variables..file', 'x')

    def test_far_index_is_rejected(self):
        document = {'variables': {}}
        with self.assertRaises(MalformedRequest):
            graft(document, 'variables.f.50000000', None)
        self.assertEqual(document['variables'], {'f': []})

        with self.assertRaises(MalformedRequest):
            graft({'variables': {'f': []}}, 'variables.f.' + '9' * 5000, None)

    def test_index_within_padding_limit(self):
        document = {'variables': {'f': []}}
        graft(document, f'variables.f.{MAX_ARRAY_PADDING}', 'x')
        self.assertEqual(len(document['variables']['f']), MAX_ARRAY_PADDING + 1)
        self.assertEqual(document['variables']['f'][-1], 'x')

    def test_node_kind(self):
        self.assertEqual(node_kind(None), NodeKind.NULL)
        self.assertEqual(node_kind({}), NodeKind.OBJECT)
        self.assertEqual(node_kind([]), NodeKind.ARRAY)
        self.assertEqual(node_kind('x'), NodeKind.SCALAR)
        self.assertEqual(node_kind(0), NodeKind.SCALAR)


# ==================================================
# CLASSIFICATION
# ==================================================

class UploadValidatorTest(SimpleTestCase):

    def test_valid_properties(self):
        self.assertEqual(
            UploadValidator.validate_file_properties('a.txt', 0, 'text/plain'),
            (True, "")
        )

    def test_invalid_properties(self):
        for name, size, declared in [
            ('', 10, 'text/plain'),
            ('a.txt', None, 'text/plain'),
            ('a.txt', -1, 'text/plain'),
            ('a.txt', '10', 'text/plain'),
            ('a.txt', 10, ''),
        ]:
            is_valid, message = UploadValidator.validate_file_properties(name, size, declared)
            self.assertFalse(is_valid)
            self.assertIn("Invalid file properties", message)


class ClassifierTest(SimpleTestCase):
    """Test MIME resolution and allow-list enforcement"""

    async def test_text_content_becomes_text_plain(self):
        part = RawFilePart.from_bytes('note.txt', NOTE_BYTES, 'application/octet-stream')
        resolved = await classify(part, ALLOWED_TYPES)

        self.assertEqual(resolved.mime_type, 'text/plain')
        self.assertEqual(resolved.file_name, 'note.txt')
        self.assertEqual(resolved.file_size, 10)
        self.assertEqual(resolved.encoding, 'binary')
        self.assertEqual(resolved.open().read(), NOTE_BYTES)

    async def test_signature_overrides_declared_type(self):
        part = RawFilePart.from_bytes('image.txt', PNG_BYTES, 'text/plain')
        resolved = await classify(part, ALLOWED_TYPES)
        self.assertEqual(resolved.mime_type, 'image/png')

    async def test_disallowed_type(self):
        part = RawFilePart.from_bytes('report.pdf', PDF_BYTES, 'text/plain')
        with self.assertRaisesMessage(DisallowedType, "File type application/pdf is not allowed"):
            await classify(part, ALLOWED_TYPES)

    async def test_unrecognised_binary_keeps_declared_type(self):
        part = RawFilePart.from_bytes('blob.bin', OPAQUE_BYTES, 'application/x-custom')
        resolved = await classify(part, ['application/x-custom'])
        self.assertEqual(resolved.mime_type, 'application/x-custom')

        with self.assertRaises(DisallowedType):
            await classify(part, ALLOWED_TYPES)

    async def test_invalid_file_properties(self):
        part = RawFilePart.from_bytes('', NOTE_BYTES, 'text/plain')
        with self.assertRaises(InvalidFile):
            await classify(part, ALLOWED_TYPES)

        part = RawFilePart.from_bytes('note.txt', NOTE_BYTES, '')
        with self.assertRaises(InvalidFile):
            await classify(part, ALLOWED_TYPES)

    async def test_classification_is_deterministic(self):
        outcomes = []
        for _ in range(3):
            part = RawFilePart.from_bytes('image.png', PNG_BYTES, 'image/png')
            outcomes.append((await classify(part, ALLOWED_TYPES)).mime_type)
        self.assertEqual(outcomes, ['image/png'] * 3)

    async def test_read_deadline(self):
        async def stalled():
            await asyncio.sleep(10)
            return b''

        part = RawFilePart(name='slow.txt', size=4, declared_mime_type='text/plain', reader=stalled)
        with self.assertRaises(FileReadTimeout):
            await classify(part, ALLOWED_TYPES, read_timeout=0.01)

    def test_sniff_mime_type(self):
        self.assertEqual(sniff_mime_type(PNG_BYTES, 'application/octet-stream'), 'image/png')
        self.assertEqual(sniff_mime_type(NOTE_BYTES, 'application/octet-stream'), 'text/plain')
        self.assertEqual(sniff_mime_type(OPAQUE_BYTES, 'application/x-custom'), 'application/x-custom')


# ==================================================
# ORCHESTRATION
# ==================================================

class UploadOrchestratorTest(SimpleTestCase):
    """Test map-driven placement, settlement and engine hand-off"""

    def make_parts(self, files, files_map, variables):
        return MultipartParts(
            files=files,
            files_map=files_map,
            operations={
                'query': 'mutation($f: Upload!) { uploadFile(file: $f) { fileName } }',
                'variables': variables,
            },
        )

    def make_orchestrator(self, engine, max_file_size=10_000_000):
        return UploadOrchestrator(engine, allowed_types=ALLOWED_TYPES, max_file_size=max_file_size)

    async def test_single_text_file_round_trip(self):
        engine = RecordingEngine()
        parts = self.make_parts(
            {'0': RawFilePart.from_bytes('note.txt', NOTE_BYTES, 'text/plain')},
            {'0': ['variables.f']},
            {'f': None},
        )

        response = await self.make_orchestrator(engine).process(parts, context_value={'user': 'u'})

        self.assertEqual(response.status, 200)
        self.assertEqual(response.payload, {"data": {"ok": True}})
        self.assertEqual(len(engine.requests), 1)

        request, context_value = engine.requests[0]
        self.assertEqual(context_value, {'user': 'u'})
        upload = request.variables['f']
        self.assertIsInstance(upload, PendingUpload)
        self.assertEqual(upload.state, UploadState.RESOLVED)
        self.assertEqual(upload.file.file_name, 'note.txt')
        self.assertEqual(upload.file.mime_type, 'text/plain')
        self.assertEqual(upload.file.file_size, 10)
        self.assertEqual(upload.file.encoding, 'binary')

    async def test_missing_file_grafts_null(self):
        engine = RecordingEngine()
        parts = self.make_parts({}, {'0': ['variables.f', 'variables.g.0']}, {'f': 'stale'})

        await self.make_orchestrator(engine).process(parts)

        request, _ = engine.requests[0]
        self.assertIsNone(request.variables['f'])
        self.assertEqual(request.variables['g'], [None])

    async def test_oversized_file_short_circuits(self):
        engine = RecordingEngine()

        async def never_read():
            raise AssertionError("oversized file must not be read")

        big = RawFilePart(
            name='big.bin', size=11_000_000,
            declared_mime_type='application/octet-stream', reader=never_read,
        )
        parts = self.make_parts({'0': big}, {'0': ['variables.f']}, {'f': None})

        response = await self.make_orchestrator(engine).process(parts)

        self.assertEqual(response.status, 413)
        self.assertEqual(list(response.payload), ['errors'])
        self.assertRegex(response.payload['errors'][0]['message'], r'(?i)maximum allowed size')
        self.assertEqual(engine.requests, [])

    async def test_oversized_file_cancels_started_tasks(self):
        engine = RecordingEngine()

        async def slow_read():
            await asyncio.sleep(10)
            return NOTE_BYTES

        slow = RawFilePart(name='slow.txt', size=10, declared_mime_type='text/plain', reader=slow_read)
        big = RawFilePart.from_bytes('big.txt', b'x' * 64, 'text/plain')
        parts = MultipartParts(
            files={'0': slow, '1': big},
            files_map={'0': ['variables.a'], '1': ['variables.b']},
            operations={'query': 'q', 'variables': {'a': None, 'b': None}},
        )

        response = await asyncio.wait_for(
            self.make_orchestrator(engine, max_file_size=32).process(parts), timeout=5
        )

        self.assertEqual(response.status, 413)
        self.assertIn('big.txt', response.payload['errors'][0]['message'])
        self.assertEqual(engine.requests, [])

    async def test_one_failure_does_not_block_others(self):
        engine = RecordingEngine()
        parts = MultipartParts(
            files={
                '0': RawFilePart.from_bytes('a.txt', NOTE_BYTES, 'text/plain'),
                '1': RawFilePart.from_bytes('b.pdf', PDF_BYTES, 'application/pdf'),
                '2': RawFilePart.from_bytes('c.png', PNG_BYTES, 'image/png'),
            },
            files_map={'0': ['variables.files.0'], '1': ['variables.files.1'], '2': ['variables.files.2']},
            operations={'query': 'q', 'variables': {'files': [None, None, None]}},
        )

        await self.make_orchestrator(engine).process(parts)

        request, _ = engine.requests[0]
        first, second, third = request.variables['files']
        self.assertEqual(first.state, UploadState.RESOLVED)
        self.assertEqual(second.state, UploadState.REJECTED)
        self.assertEqual(third.state, UploadState.RESOLVED)
        self.assertIn("Failed to process file b.pdf", second.error.message)
        self.assertEqual(third.file.mime_type, 'image/png')

    async def test_every_placed_upload_is_settled(self):
        engine = RecordingEngine()
        files = {
            str(i): RawFilePart.from_bytes(f'f{i}.txt', NOTE_BYTES, 'text/plain')
            for i in range(5)
        }
        files['5'] = RawFilePart.from_bytes('', NOTE_BYTES, 'text/plain')
        files_map = {key: [f'variables.files.{key}'] for key in files}
        parts = MultipartParts(files=files, files_map=files_map, operations={'query': 'q'})

        await self.make_orchestrator(engine).process(parts)

        request, _ = engine.requests[0]
        self.assertEqual(len(request.variables['files']), 6)
        for upload in request.variables['files']:
            self.assertTrue(upload.is_settled)
        self.assertEqual(request.variables['files'][5].state, UploadState.REJECTED)

    async def test_same_file_shared_across_paths(self):
        engine = RecordingEngine()
        parts = self.make_parts(
            {'0': RawFilePart.from_bytes('note.txt', NOTE_BYTES, 'text/plain')},
            {'0': ['variables.f', 'variables.copies.0']},
            {'f': None, 'copies': [None]},
        )

        await self.make_orchestrator(engine).process(parts)

        request, _ = engine.requests[0]
        self.assertIs(request.variables['f'], request.variables['copies'][0])

    async def test_missing_variables_become_object(self):
        engine = RecordingEngine()
        parts = MultipartParts(files={}, files_map={}, operations={'query': '{ ping }', 'variables': None})

        await self.make_orchestrator(engine).process(parts)

        request, _ = engine.requests[0]
        self.assertEqual(request.variables, {})
        self.assertEqual(request.query, '{ ping }')

    async def test_engine_failure_is_wrapped(self):
        engine = RecordingEngine(error=ValueError("boom"))
        parts = self.make_parts({}, {}, {})

        with self.assertRaisesMessage(EngineExecutionFailure, "boom"):
            await self.make_orchestrator(engine).process(parts)

    async def test_process_upload_request(self):
        engine = RecordingEngine()
        parts = self.make_parts(
            {'0': RawFilePart.from_bytes('note.txt', NOTE_BYTES, 'text/plain')},
            {'0': ['variables.f']},
            {'f': None},
        )

        response = await process_upload_request(
            parts,
            engine=engine,
            allowed_types=['image/png'],
            max_file_size=100,
        )

        self.assertEqual(response.status, 200)
        request, _ = engine.requests[0]
        self.assertEqual(request.variables['f'].state, UploadState.REJECTED)


# ==================================================
# RESPONSE ADAPTER & ENGINE
# ==================================================

class ResponseAdapterTest(SimpleTestCase):

    async def test_single_result_forwarded(self):
        result = {"data": {"uploadFile": {"fileName": "note.txt"}}}
        response = await adapt_engine_response(SingleResponse(single_result=result))

        self.assertEqual(response.status, 200)
        self.assertIs(response.payload, result)

    async def test_incremental_result_drained(self):
        async def patches():
            yield {"incremental": [{"data": {"b": 1}}], "hasNext": True}
            yield {"incremental": [{"data": {"c": 2}}], "hasNext": False}

        response = await adapt_engine_response(IncrementalResponse(
            initial_result={"data": {"a": 0}, "hasNext": True},
            subsequent_results=patches(),
        ))

        self.assertEqual(response.payload["initialResult"], {"data": {"a": 0}, "hasNext": True})
        self.assertEqual(len(response.payload["subsequentResults"]), 2)
        self.assertFalse(response.payload["subsequentResults"][-1]["hasNext"])

    async def test_unknown_shape(self):
        with self.assertRaises(InternalError):
            await adapt_engine_response({"data": {}})

    def test_error_response(self):
        response = WireResponse.from_error(InternalError("Unexpected server response format"))
        self.assertEqual(response.status, 500)
        self.assertEqual(
            response.payload,
            {"errors": [{"message": "Unexpected server response format"}]}
        )


class StrawberryEngineTest(SimpleTestCase):

    async def test_execute_query(self):
        response = await StrawberryEngine(schema).execute_operation(OperationRequest(query='{ ping }'))

        self.assertIsInstance(response, SingleResponse)
        self.assertEqual(response.single_result["data"], {"ping": True})
        self.assertNotIn("errors", response.single_result)

    async def test_rejected_upload_becomes_field_error(self):
        upload = PendingUpload()
        upload.reject(FileRejected("Failed to process file b.pdf: not allowed"))

        response = await StrawberryEngine(schema).execute_operation(OperationRequest(
            query='mutation($f: Upload!) { uploadFile(file: $f) { fileName } }',
            variables={'f': upload},
        ))

        result = response.single_result
        self.assertEqual(result["data"], {"uploadFile": None})
        self.assertEqual(result["errors"][0]["message"], "Failed to process file b.pdf: not allowed")

    async def test_plain_value_is_not_an_upload(self):
        response = await StrawberryEngine(schema).execute_operation(OperationRequest(
            query='mutation($f: Upload!) { uploadFile(file: $f) { fileName } }',
            variables={'f': 'not-a-file'},
        ))

        self.assertIsNone(response.single_result["data"])
        self.assertIn("Upload value invalid", response.single_result["errors"][0]["message"])

    async def test_incremental_result_is_drained(self):
        class Payload:
            def __init__(self, formatted):
                self.formatted = formatted

        class DeferredResult:
            def __init__(self):
                self.initial_result = Payload({"data": {"a": 0}, "hasNext": True})
                self.subsequent_results = self.patches()

            async def patches(self):
                yield Payload({"incremental": [{"data": {"b": 1}}], "hasNext": False})

        class DeferringSchema:
            def __init__(self):
                self.calls = []

            async def execute(self, query, **kwargs):
                self.calls.append((query, kwargs))
                return DeferredResult()

        deferring_schema = DeferringSchema()
        response = await StrawberryEngine(deferring_schema).execute_operation(
            OperationRequest(query='{ a ... @defer { b } }', operation_name='Deferred'),
            context_value={'user': 'u'},
        )

        self.assertIsInstance(response, IncrementalResponse)
        self.assertEqual(response.initial_result, {"data": {"a": 0}, "hasNext": True})
        query, kwargs = deferring_schema.calls[0]
        self.assertEqual(kwargs['operation_name'], 'Deferred')
        self.assertEqual(kwargs['context_value'], {'user': 'u'})

        wire_response = await adapt_engine_response(response)
        self.assertEqual(wire_response.status, 200)
        self.assertEqual(wire_response.payload, {
            "initialResult": {"data": {"a": 0}, "hasNext": True},
            "subsequentResults": [{"incremental": [{"data": {"b": 1}}], "hasNext": False}],
        })

    def test_upload_scalar_in_schema(self):
        self.assertIn('scalar Upload', str(schema))


class UploadSettingsTest(SimpleTestCase):

    @override_settings(GRAPHQL_UPLOAD={'MAX_FILE_SIZE': 1024, 'READ_TIMEOUT': None})
    def test_partial_settings_fill_defaults(self):
        upload_settings = get_upload_settings()

        self.assertEqual(upload_settings.max_file_size, 1024)
        self.assertIsNone(upload_settings.read_timeout)
        self.assertEqual(upload_settings.allowed_types, DEFAULT_ALLOWED_TYPES)
        self.assertFalse(upload_settings.strict_paths)

    @override_settings(GRAPHQL_UPLOAD=None)
    def test_missing_settings(self):
        self.assertEqual(get_upload_settings(), UploadSettings())

"""
HTTP tests for the GraphQL upload endpoint
"""
import json
import shutil
import tempfile

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase, override_settings

TEMP_MEDIA_ROOT = tempfile.mkdtemp()

UPLOAD_FILE_QUERY = """
    mutation ($file: Upload!) {
        uploadFile(file: $file) {
            fileName
            mimeType
            encoding
            fileSize
            uri
        }
    }
"""

UPLOAD_TWO_QUERY = """
    mutation ($a: Upload!, $b: Upload!) {
        first: uploadFile(file: $a) { fileName mimeType }
        second: uploadFile(file: $b) { fileName mimeType }
    }
"""

UPLOAD_FILES_QUERY = """
    mutation ($files: [Upload!]!) {
        uploadFiles(files: $files) { fileName fileSize }
    }
"""


@override_settings(MEDIA_ROOT=TEMP_MEDIA_ROOT, DEBUG=False)
class UploadViewTest(SimpleTestCase):
    """Test multipart requests end to end through the example schema"""

    @classmethod
    def tearDownClass(cls):
        shutil.rmtree(TEMP_MEDIA_ROOT, ignore_errors=True)
        super().tearDownClass()

    async def post_upload(self, operations, files_map, **files):
        data = {
            'operations': operations if isinstance(operations, str) else json.dumps(operations),
            'map': files_map if isinstance(files_map, str) else json.dumps(files_map),
        }
        data.update(files)
        return await self.async_client.post('/graphql/', data=data)

    async def test_upload_single_text_file(self):
        response = await self.post_upload(
            {'query': UPLOAD_FILE_QUERY, 'variables': {'file': None}},
            {'0': ['variables.file']},
            **{'0': SimpleUploadedFile('note.txt', b'hello note', content_type='text/plain')}
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertNotIn('errors', body)

        uploaded = body['data']['uploadFile']
        self.assertEqual(uploaded['fileName'], 'note.txt')
        self.assertEqual(uploaded['mimeType'], 'text/plain')
        self.assertEqual(uploaded['encoding'], 'binary')
        self.assertEqual(uploaded['fileSize'], 10)
        self.assertIn('/media/note', uploaded['uri'])

    async def test_oversized_file_returns_413(self):
        with self.settings(GRAPHQL_UPLOAD={'ALLOWED_TYPES': ['text/plain'], 'MAX_FILE_SIZE': 5}):
            response = await self.post_upload(
                {'query': UPLOAD_FILE_QUERY, 'variables': {'file': None}},
                {'0': ['variables.file']},
                **{'0': SimpleUploadedFile('note.txt', b'hello note', content_type='text/plain')}
            )

        self.assertEqual(response.status_code, 413)
        body = response.json()
        self.assertNotIn('data', body)
        self.assertRegex(body['errors'][0]['message'], r'(?i)maximum allowed size')

    async def test_disallowed_file_does_not_block_sibling(self):
        response = await self.post_upload(
            {'query': UPLOAD_TWO_QUERY, 'variables': {'a': None, 'b': None}},
            {'0': ['variables.a'], '1': ['variables.b']},
            **{
                '0': SimpleUploadedFile('a.txt', b'plain text', content_type='text/plain'),
                '1': SimpleUploadedFile('b.pdf', b'%PDF-1.4\n%\xe2\xe3\xcf\xd3\n', content_type='application/pdf'),
            }
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['data']['first'], {'fileName': 'a.txt', 'mimeType': 'text/plain'})
        self.assertIsNone(body['data']['second'])
        self.assertEqual(len(body['errors']), 1)
        self.assertEqual(body['errors'][0]['path'], ['second'])
        self.assertIn('application/pdf is not allowed', body['errors'][0]['message'])

    async def test_upload_many_files(self):
        response = await self.post_upload(
            {'query': UPLOAD_FILES_QUERY, 'variables': {'files': [None, None]}},
            {'0': ['variables.files.0'], '1': ['variables.files.1']},
            **{
                '0': SimpleUploadedFile('one.txt', b'one', content_type='text/plain'),
                '1': SimpleUploadedFile('two.txt', b'two!', content_type='text/plain'),
            }
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['uploadFiles'], [
            {'fileName': 'one.txt', 'fileSize': 3},
            {'fileName': 'two.txt', 'fileSize': 4},
        ])

    async def test_missing_file_surfaces_null_error(self):
        response = await self.post_upload(
            {'query': UPLOAD_FILE_QUERY, 'variables': {'file': None}},
            {'missing': ['variables.file']},
            **{'0': SimpleUploadedFile('note.txt', b'hello note', content_type='text/plain')}
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertIsNone(body['data'])
        self.assertIn('Upload!', body['errors'][0]['message'])

    async def test_far_array_index_is_rejected(self):
        response = await self.post_upload(
            {'query': '{ ping }', 'variables': {}},
            {'missing': ['variables.f.50000000']},
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn('too far past the end', response.json()['errors'][0]['message'])

    async def test_malformed_requests(self):
        valid_operations = {'query': UPLOAD_FILE_QUERY, 'variables': {'file': None}}
        valid_map = {'0': ['variables.file']}

        cases = [
            ('<broken>', valid_map),
            ('1', valid_map),
            ('[]', valid_map),
            (valid_operations, '<broken>'),
            (valid_operations, '["variables.file"]'),
            (valid_operations, {'0': 'variables.file'}),
            (valid_operations, {'0': ['query']}),
            ({'variables': {'file': None}}, valid_map),
        ]
        for operations, files_map in cases:
            response = await self.post_upload(
                operations,
                files_map,
                **{'0': SimpleUploadedFile('note.txt', b'hello note', content_type='text/plain')}
            )
            self.assertEqual(response.status_code, 400, msg=(operations, files_map))
            self.assertTrue(response.json()['errors'])

    async def test_missing_map_field(self):
        response = await self.async_client.post('/graphql/', data={
            'operations': json.dumps({'query': UPLOAD_FILE_QUERY, 'variables': {'file': None}}),
        })

        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json(),
            {'errors': [{'message': 'Missing map or operations in form data.'}]}
        )

    async def test_json_requests_are_forwarded(self):
        response = await self.async_client.post(
            '/graphql/',
            data={'query': '{ ping }'},
            content_type='application/json',
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'data': {'ping': True}})

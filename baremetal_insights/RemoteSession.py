import json
import logging

import requests

from baremetal_insights.errors import AuthenticationError, ResourceMissing, TransportError

# BMCs ship self-signed certificates
requests.packages.urllib3.disable_warnings()

logger = logging.getLogger(__name__)

SESSION_ENDPOINT = '/SessionService/Sessions'
MISSING_CODES = (404, 405, 501)
AUTH_CODES = (401, 403)


class RemoteSession:
    """
    One Redfish session against one management controller.

    The session is created on construction and must be closed with
    close_session() (or by using the object as a context manager) so the
    controller does not run out of session slots. Controllers without a
    session service are queried with basic auth instead.
    """

    def __init__(self, mgmt, user, pw, endpoint=SESSION_ENDPOINT, timeout=30, http=None, verify=False):
        self.session_location = None
        self.token = None
        self.mgmt = mgmt
        self.endpoint = endpoint
        self.timeout = timeout
        self.verify = verify
        self._owns_http = http is None
        self.session = http if http is not None else requests.Session()
        self.host_url = f'https://{mgmt}'
        self.base_url = f'{self.host_url}/redfish/v1'
        self._cache = {}

        try:
            self.create_session(user, pw)
        except TransportError:
            self._release()
            raise

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close_session()

    def create_session(self, user, pw):
        credentials = json.dumps({'UserName': user, 'Password': pw})
        url = f'{self.base_url}{self.endpoint}'
        header = {'content-type': 'application/json'}
        try:
            response = self.session.post(url, headers=header, data=credentials, timeout=self.timeout, verify=self.verify)
        except requests.RequestException as err:
            raise TransportError(f'{self.mgmt}: unable to reach controller: {err}') from err

        status = response.status_code
        if status in (200, 201):
            self.token = response.headers.get('x-auth-token')
            self.session_location = response.headers.get('location')
            if not self.token:
                raise TransportError(f'{self.mgmt}: session created without a token')
            self.session.headers.update({'x-auth-token': self.token})            # Save token in session header
        elif status in AUTH_CODES:
            raise AuthenticationError(f'{self.mgmt}: unable to create Redfish session, check credentials. Status code:{status}')
        elif status in MISSING_CODES:
            logger.debug('%s: no session service (status %s), using basic auth', self.mgmt, status)
            self.session.auth = (user, pw)
        else:
            raise TransportError(f'{self.mgmt}: unable to create Redfish session. Status code:{status}')

    def url_for(self, path):
        if path.startswith('http://') or path.startswith('https://'):
            return path
        if path.startswith('/redfish/v1'):
            return f'{self.host_url}{path}'
        return f'{self.base_url}{path}'

    def get_json(self, path):
        """GET a resource and return the decoded body. Repeated GETs are served from memory."""
        url = self.url_for(path)
        if url in self._cache:
            return self._cache[url]

        try:
            response = self.session.get(url, timeout=self.timeout, verify=self.verify)
        except requests.RequestException as err:
            raise TransportError(f'{self.mgmt}: GET {path} failed: {err}') from err

        status = response.status_code
        if status in AUTH_CODES:
            raise AuthenticationError(f'{self.mgmt}: GET {path} rejected. Status code:{status}')
        if status in MISSING_CODES:
            raise ResourceMissing(f'{self.mgmt}: {path} not found. Status code:{status}')
        if status != 200:
            raise TransportError(f'{self.mgmt}: GET {path} failed. Status code:{status}')

        try:
            body = response.json()
        except ValueError as err:
            raise TransportError(f'{self.mgmt}: {path} returned invalid JSON') from err

        self._cache[url] = body
        return body

    def close_session(self):
        if not self.session_location:
            self._release()
            return
        full_url = self.url_for(self.session_location)
        try:
            response = self.session.delete(full_url, timeout=self.timeout, verify=self.verify)
            if response.status_code not in (200, 202, 204):
                logger.debug('%s: failed to close session. Status code: %s', self.mgmt, response.status_code)
        except requests.RequestException as err:
            logger.debug('%s: error closing session: %s', self.mgmt, err)
        finally:
            self.session_location = None
            self._release()

    def _release(self):
        if self._owns_http:
            self.session.close()

from shared.clients.ClientManager import ClientManager
from shared.clients.cms.CMSClientInterface import CMSClientInterface


class CMSClientManager(ClientManager[CMSClientInterface]):
    """Selects the CMS client from CMS_ENGINE (default "payload")."""

    client_type = "cms"
    class_prefix = "CMSClient"
    default_engine = "payload"

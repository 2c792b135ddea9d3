"""Navigator Vault Meta information.
   Navigator Vault caches, authorizes and autofills shared credentials
   for a single browsing session.
"""
__title__ = 'navigator_vault'
__description__ = (
   'Navigator Vault caches, authorizes and autofills shared credentials '
   'for a single browsing session.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/navigator-vault'

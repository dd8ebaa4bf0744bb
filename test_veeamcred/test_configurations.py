import logging
import os
import shutil
import tempfile
import unittest

from veeamcred.configurations import ConfigManager, get_veeamcred_config_manager, iter_config_search_paths
from veeamcred.exceptions import PluginExistsError, PluginNotFoundError
from veeamcred.logging import LogFormat, LogStreamHandler, Logger, configure_logging
from veeamcred.plugins import CONFIG_LOADERS, PluginGroup
from veeamcred.sinks.logs import LogSink


class TestConfigManager(unittest.TestCase):

    def setUp(self):
        self.manager = ConfigManager({
            'Section': {
                'Name': 'value',
                'Reference': '${Other:Thing}/sub',
                'Local': '${Name}!',
                'Money': '$$5',
                'Flag': 'yes',
                'Number': '42',
                'Items': 'a, b; c',
            },
            'Other': {'Thing': 'base'},
        })

    def testOptions(self):
        self.assertTrue(self.manager.has_section('Section'))
        self.assertFalse(self.manager.has_section('Missing'))
        self.assertEqual(self.manager.get_option('Section', 'Name'), 'value')
        self.assertEqual(self.manager.get_option('Section', 'Missing', None), None)
        with self.assertRaises(KeyError):
            self.manager.get_option('Section', 'Missing')

    def testInterpolation(self):
        self.assertEqual(self.manager.get_option('Section', 'Reference'), 'base/sub')
        self.assertEqual(self.manager.get_option('Section', 'Local'), 'value!')
        self.assertEqual(self.manager.get_option('Section', 'Money'), '$5')
        self.assertEqual(self.manager.get_option('Section', 'Money', raw=True), '$$5')

    def testNamedLoaders(self):
        self.assertIs(self.manager.load_option('Section', 'Flag', 'bool'), True)
        self.assertEqual(self.manager.load_option('Section', 'Number', 'int'), 42)
        self.assertEqual(self.manager.load_option('Section', 'Items', 'list'), ['a', 'b', 'c'])
        self.assertEqual(self.manager.load_option('Section', 'Absent', 'int', 7), 7)

    def testSectionAsDict(self):
        self.assertEqual(self.manager.load_section('Other'), {'thing': 'base'})

    def testOptionNames(self):
        self.assertEqual(self.manager.get_options('Other'), {'thing'})
        self.assertEqual(self.manager.get_options('Missing'), set())
        self.assertTrue(self.manager.has_option('Section', 'FLAG'))

    def testReferences(self):
        manager = ConfigManager({
            'A': {'Direct': '#B:Value', 'Literal': '##hash'},
            'B': {'Value': '12'},
        })
        self.assertEqual(manager.load_option('A', 'Direct', 'int'), 12)
        self.assertEqual(manager.load_option('A', 'Literal'), '#hash')
        self.assertEqual(manager.load_value('#B'), {'value': '12'})

    def testLoadedObjectsAreCached(self):
        manager = ConfigManager({'Loot': {'Type': 'LogSink'}})
        self.assertIs(manager.load_section('Loot'), manager.load_section('Loot'))

    def testSetOption(self):
        self.manager.set_option('New', 'Key', 'v')
        self.assertEqual(self.manager.get_option('New', 'Key'), 'v')


class TestConfigFiles(unittest.TestCase):

    def setUp(self):
        self.path = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.path)

    def testSearchPaths(self):
        with open(os.path.join(self.path, 'veeamcred.cfg'), 'w') as file:
            file.write('[Credential Dump]\nAction = export\n')
        paths = list(iter_config_search_paths('veeamcred', [self.path]))
        self.assertEqual(len(paths), 1)
        self.assertTrue(paths[0].endswith('veeamcred.cfg'))

    def testLoadFromPath(self):
        path = os.path.join(self.path, 'custom.ini')
        with open(path, 'w') as file:
            file.write('[Credential Dump]\nBatch DPAPI = false\n')
        manager = ConfigManager(path)
        self.assertEqual(manager.load_option('Credential Dump', 'Batch DPAPI', 'bool'), False)

    def testPackagedDefaults(self):
        manager = get_veeamcred_config_manager()
        self.assertTrue(manager.has_section('Credential Dump'))
        self.assertIsInstance(manager.load_option('Credential Dump', 'Sink'), LogSink)


class TestPlugins(unittest.TestCase):

    def testBuiltInLoadersAreRegistered(self):
        for name in ('bool', 'int', 'list', 'log_level', 'LogSink', 'DirectorySink', 'CompositeSink',
                     'CallbackSink', 'NullSink', 'LogStreamHandler', 'CredentialDump'):
            self.assertIn(name, CONFIG_LOADERS)

    def testCaseInsensitive(self):
        self.assertIs(CONFIG_LOADERS['logsink'], CONFIG_LOADERS['LogSink'])

    def testRegistration(self):
        group = PluginGroup('veeamcred.test_plugins')

        @group.plugin
        def upper(value):
            return value.upper()

        self.assertIs(group['UPPER'], upper)
        with self.assertRaises(PluginExistsError):
            group.register('upper', str.lower)
        with self.assertRaises(PluginNotFoundError):
            _ = group['lower']
        self.assertIsNone(group.get('lower'))

    def testLoadWithoutEntryPoints(self):
        group = PluginGroup('veeamcred.no_such_group')
        group.load()
        self.assertEqual(len(group), 0)


class TestLoggingConfiguration(unittest.TestCase):

    def tearDown(self):
        logger = logging.getLogger('veeamcred.test.configured')
        for handler in list(logger.handlers):
            logger.removeHandler(handler)

    def testConfigureLogging(self):
        manager = ConfigManager({
            'Logging': {'Loggers': 'Test Logger'},
            'Test Logger': {
                'Name': 'veeamcred.test.configured',
                'Level': 'DEBUG',
                'Handlers': 'Test Handler',
                'Propagate': 'false',
            },
            'Test Handler': {'Type': 'LogStreamHandler', 'Stream': 'stdout', 'Level': 'WARNING',
                             'Format': '%(levelname)s %(message)s'},
        })
        loggers = configure_logging(manager)

        self.assertEqual(len(loggers), 1)
        logger = loggers[0]
        self.assertIs(logger, logging.getLogger('veeamcred.test.configured'))
        self.assertEqual(logger.level, logging.DEBUG)
        self.assertFalse(logger.propagate)

        handler, = logger.handlers
        self.assertIsInstance(handler, LogStreamHandler)
        self.assertEqual(handler.level, logging.WARNING)
        self.assertIsInstance(handler.formatter, LogFormat)

    def testMissingSectionIsIgnored(self):
        self.assertEqual(configure_logging(ConfigManager({})), [])

    def testLoggerNeedsSection(self):
        manager = ConfigManager({'S': {'Logger': 'x'}})
        with self.assertRaises(NotImplementedError):
            manager.load_option('S', 'Logger', Logger)


if __name__ == '__main__':
    unittest.main()

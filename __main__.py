"""Pulumi program: provision the connection identity described by the stack config."""

import iamlink.pulumi_resources

iamlink.pulumi_resources.autoload()

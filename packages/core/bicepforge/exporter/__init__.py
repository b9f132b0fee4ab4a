"""Export generated documents and schemas, and write deployment packages."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

if TYPE_CHECKING:
    from bicepforge.assembler import AssemblyResult
    from bicepforge.declarations import GeneratedDocument

FORMATS = ("bicep", "parameters")
SCHEMA_FORMATS = ("json", "yaml")


def export_document(doc: GeneratedDocument, fmt: str = "bicep", output: str | None = None) -> str:
    """Render a document in the given format. Returns the rendered string."""
    fmt = fmt.lower().strip()

    if fmt == "bicep":
        from bicepforge.exporter.bicep import render_document

        content = render_document(doc)
    elif fmt in ("parameters", "params"):
        from bicepforge.exporter.parameters import render

        content = render(doc)
    else:
        raise ValueError(f"Unknown export format: {fmt!r}. Supported: {', '.join(FORMATS)}")

    if output:
        Path(output).write_text(content)
    return content


def export_schema(schema: dict[str, Any], fmt: str = "json", output: str | None = None) -> str:
    """Serialise a resource schema as JSON or YAML, keeping key order."""
    fmt = fmt.lower().strip()

    if fmt == "json":
        content = json.dumps(schema, indent=2) + "\n"
    elif fmt in ("yaml", "yml"):
        content = yaml.safe_dump(schema, sort_keys=False, allow_unicode=True, default_flow_style=False)
    else:
        raise ValueError(f"Unknown schema format: {fmt!r}. Supported: {', '.join(SCHEMA_FORMATS)}")

    if output:
        Path(output).write_text(content)
    return content


def package_files(result: AssemblyResult) -> dict[str, str]:
    """Relative path -> content for every file of a deployment package."""
    files = {"main.bicep": result.text}
    if result.parameters is not None:
        files["main.parameters.json"] = json.dumps(result.parameters, indent=2) + "\n"
    for resource_id, doc in result.modules.items():
        files[f"modules/{resource_id}.bicep"] = doc.render()
    files["README.md"] = readme(result.resource_names)
    files["deploy.ps1"] = DEPLOY_SCRIPT
    return files


def write_package(result: AssemblyResult, directory: str | Path) -> list[Path]:
    """Write the deployment package into ``directory``. Returns the written paths."""
    return _write_dir(directory, package_files(result))


def _write_dir(dir_path: str | Path, files: dict[str, str]) -> list[Path]:
    d = Path(dir_path)
    written = []
    for name, content in files.items():
        path = d / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        written.append(path)
    return written


def readme(resource_names: list[str]) -> str:
    resource_list = "\n".join(f"- {name}" for name in resource_names)
    return f"""# Azure Deployment Package

This package contains Bicep templates for deploying Azure resources.

## Resources Included

{resource_list}

## Deployment Instructions

### Prerequisites
- Azure CLI installed
- Azure subscription access
- Resource group created

### Deploy using Azure CLI

```bash
# Login to Azure
az login

# Set subscription
az account set --subscription <your-subscription-id>

# Create resource group (if not exists)
az group create --name <resource-group-name> --location <location>

# Deploy the template
az deployment group create \\
  --resource-group <resource-group-name> \\
  --template-file main.bicep \\
  --parameters @main.parameters.json
```

### Deploy using PowerShell

```powershell
# Run the provided deployment script
.\\deploy.ps1 -ResourceGroupName "<resource-group-name>" -Location "<location>"
```

## Customization

Edit the `main.parameters.json` file to customize the deployment parameters for your environment.

Generated by bicepforge
"""


DEPLOY_SCRIPT = """# Azure Deployment Script
# Generated by bicepforge

param(
    [Parameter(Mandatory=$true)]
    [string]$ResourceGroupName,

    [Parameter(Mandatory=$true)]
    [string]$Location,

    [Parameter(Mandatory=$false)]
    [string]$SubscriptionId,

    [Parameter(Mandatory=$false)]
    [string]$ParametersFile = "main.parameters.json"
)

Write-Host "Starting Azure deployment..." -ForegroundColor Green

# Login check
try {
    $context = Get-AzContext
    if (!$context) {
        Write-Host "Please login to Azure first..." -ForegroundColor Yellow
        Connect-AzAccount
    }
} catch {
    Write-Host "Please install Azure PowerShell module: Install-Module -Name Az" -ForegroundColor Red
    exit 1
}

# Set subscription if provided
if ($SubscriptionId) {
    Set-AzContext -SubscriptionId $SubscriptionId
}

# Create resource group if it doesn't exist
$rg = Get-AzResourceGroup -Name $ResourceGroupName -ErrorAction SilentlyContinue
if (!$rg) {
    Write-Host "Creating resource group: $ResourceGroupName" -ForegroundColor Yellow
    New-AzResourceGroup -Name $ResourceGroupName -Location $Location
}

# Deploy Bicep template
Write-Host "Deploying Bicep template..." -ForegroundColor Yellow
try {
    $deployment = New-AzResourceGroupDeployment `
        -ResourceGroupName $ResourceGroupName `
        -TemplateFile "main.bicep" `
        -TemplateParameterFile $ParametersFile `
        -Verbose

    Write-Host "Deployment completed successfully!" -ForegroundColor Green
    Write-Host "Deployment Name: $($deployment.DeploymentName)" -ForegroundColor Cyan

    # Display outputs
    if ($deployment.Outputs.Count -gt 0) {
        Write-Host "`nDeployment Outputs:" -ForegroundColor Cyan
        $deployment.Outputs.GetEnumerator() | ForEach-Object {
            Write-Host "  $($_.Key): $($_.Value.Value)" -ForegroundColor White
        }
    }
} catch {
    Write-Host "Deployment failed: $($_.Exception.Message)" -ForegroundColor Red
    exit 1
}
"""
